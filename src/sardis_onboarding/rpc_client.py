"""
JSON-RPC client with endpoint failover.

Features:
- Multiple RPC endpoints tried in priority order
- Chain ID validation on first connection (security)
- Distinguishes RPC errors from transport failures
"""
from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Optional, Tuple

import httpx

from .config import ChainConfig
from .ports import ReceiptSource

logger = logging.getLogger(__name__)

# Server errors and rate limits: worth trying the next endpoint
RETRYABLE_RPC_CODES = (-32000, -32005)


class ChainIDMismatchError(Exception):
    """Raised when chain ID doesn't match expected value."""

    def __init__(self, chain: str, expected: int, received: int):
        self.chain = chain
        self.expected = expected
        self.received = received
        super().__init__(
            f"Chain ID mismatch for {chain}: expected {expected}, got {received}. "
            f"SECURITY: This could indicate connecting to wrong network!"
        )


class RPCError(Exception):
    """Base exception for RPC errors."""

    def __init__(self, message: str, code: Optional[int] = None, data: Any = None):
        self.code = code
        self.data = data
        super().__init__(message)


class AllEndpointsFailedError(Exception):
    """Raised when all RPC endpoints have failed."""

    def __init__(self, chain: str, errors: List[Tuple[str, str]]):
        self.chain = chain
        self.errors = errors
        error_summary = "; ".join([f"{url}: {err}" for url, err in errors[:3]])
        super().__init__(
            f"All RPC endpoints failed for {chain}. Errors: {error_summary}"
        )


class ProductionRPCClient(ReceiptSource):
    """JSON-RPC client for one chain with failover across endpoints."""

    def __init__(
        self,
        chain: ChainConfig,
        endpoints: Optional[List[str]] = None,
        validate_chain_id_on_connect: bool = True,
        timeout_seconds: float = 30.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self._chain = chain
        self._endpoints = list(endpoints or ([chain.rpc_url] if chain.rpc_url else []))
        self._validate_chain_id = validate_chain_id_on_connect
        self._timeout = timeout_seconds
        self._http_client = http_client
        self._owns_client = http_client is None
        self._request_id = 0
        self._connected = False

        if not self._endpoints:
            raise ValueError(f"No RPC endpoints configured for chain {chain.key}")

    @property
    def chain(self) -> ChainConfig:
        return self._chain

    async def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout, connect=10.0),
                limits=httpx.Limits(max_connections=20, max_keepalive_connections=10),
            )
        return self._http_client

    async def connect(self) -> None:
        """
        Validate the chain ID of the endpoint.

        SECURITY: prevents reading module state from the wrong network.
        """
        if self._connected:
            return

        if self._validate_chain_id:
            chain_id = int(await self._call_internal("eth_chainId", []), 16)
            if chain_id != self._chain.chain_id:
                raise ChainIDMismatchError(
                    chain=self._chain.key,
                    expected=self._chain.chain_id,
                    received=chain_id,
                )
            logger.info(f"Chain ID validated for {self._chain.key}: {chain_id}")

        self._connected = True

    async def _call_internal(self, method: str, params: List[Any]) -> Any:
        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": method,
            "params": params,
        }

        errors: List[Tuple[str, str]] = []
        client = await self._get_client()

        for url in self._endpoints:
            start_time = time.monotonic()
            try:
                response = await client.post(
                    url,
                    json=payload,
                    headers={"Content-Type": "application/json"},
                )
                response.raise_for_status()
                result = response.json()
            except Exception as e:
                latency_ms = (time.monotonic() - start_time) * 1000
                errors.append((url, str(e)))
                logger.warning(f"RPC call to {url} failed after {latency_ms:.0f}ms: {e}")
                continue

            if "error" in result:
                error = result["error"] or {}
                error_code = error.get("code", 0)
                errors.append((url, str(error)))
                if error_code in RETRYABLE_RPC_CODES:
                    logger.warning(f"RPC error from {url}: {error}, trying next endpoint")
                    continue
                raise RPCError(
                    message=error.get("message", str(error)),
                    code=error_code,
                    data=error.get("data"),
                )

            logger.debug(
                f"RPC call {method} to {url} succeeded in "
                f"{(time.monotonic() - start_time) * 1000:.0f}ms"
            )
            return result.get("result")

        raise AllEndpointsFailedError(chain=self._chain.key, errors=errors)

    async def call(self, method: str, params: Optional[List[Any]] = None) -> Any:
        """
        Make a JSON-RPC call with automatic failover.

        Raises:
            ChainIDMismatchError: If chain ID validation fails
            RPCError: If RPC returns a non-retryable error
            AllEndpointsFailedError: If all endpoints fail
        """
        if self._validate_chain_id and not self._connected:
            await self.connect()
        return await self._call_internal(method, params or [])

    async def get_transaction_receipt(self, tx_hash: str) -> Optional[Dict[str, Any]]:
        return await self.call("eth_getTransactionReceipt", [tx_hash])

    async def eth_call(self, tx: Dict[str, Any], block: str = "latest") -> str:
        return await self.call("eth_call", [tx, block])

    async def close(self) -> None:
        if self._http_client is not None and self._owns_client:
            await self._http_client.aclose()
        self._http_client = None
        self._connected = False

    async def __aenter__(self) -> "ProductionRPCClient":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
