"""
Sardis relay API client.

Concrete collaborators backed by the relay service:
- Safe creation on a chain (POST /relay/create-safe)
- User lookup by embedded wallet address (GET /users/address/{address})
"""
from __future__ import annotations

import inspect
import logging
from typing import Awaitable, Callable, Dict, List, Optional, Union

import httpx
from pydantic import BaseModel, ConfigDict

from .config import ChainConfig, OnboardingSettings, get_settings
from .exceptions import WalletProvisionError
from .ports import WalletProvisioner

logger = logging.getLogger(__name__)

TokenProvider = Callable[[], Union[Optional[str], Awaitable[Optional[str]]]]


class UserRecord(BaseModel):
    """User as returned by the relay API."""

    model_config = ConfigDict(extra="ignore")

    id: str
    address: str
    email: Optional[str] = None
    onboarded_at: Optional[str] = None
    safe_wallet_address_testnet: Optional[str] = None
    safe_wallet_address_mainnet: Optional[str] = None

    def safe_address_for(self, chain_key: str) -> Optional[str]:
        return getattr(self, f"safe_wallet_address_{chain_key}", None) or None


class RelayError(Exception):
    """Relay request failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


class RelayClient:
    """Authenticated HTTP client for the relay API."""

    def __init__(
        self,
        token_provider: TokenProvider,
        base_url: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        settings: Optional[OnboardingSettings] = None,
    ):
        settings = settings or get_settings()
        self._token_provider = token_provider
        self._base_url = (base_url or settings.relay_api_base_url).rstrip("/")
        self._timeout = settings.http_timeout_seconds
        self._http_client = http_client
        self._owns_client = http_client is None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout, connect=10.0),
            )
        return self._http_client

    async def _auth_headers(self) -> Dict[str, str]:
        token = self._token_provider()
        if inspect.isawaitable(token):
            token = await token
        if not token:
            raise RelayError("Not authenticated", status_code=401)
        return {"Authorization": f"Bearer {token}"}

    async def fetch_user(self, address: str) -> Optional[UserRecord]:
        """Look up a user by embedded wallet address. None if not found."""
        client = await self._get_client()
        response = await client.get(
            f"{self._base_url}/users/address/{address}",
            headers=await self._auth_headers(),
        )
        if response.status_code == 404:
            return None
        if response.is_error:
            raise RelayError(
                f"User lookup failed with status {response.status_code}",
                status_code=response.status_code,
            )

        data = response.json()
        if not data.get("success") or not data.get("data"):
            return None
        return UserRecord.model_validate(data["data"])

    async def create_safe(self, chain_id: int) -> str:
        """
        Create (or fetch) the user's Safe on a chain.

        Raises:
            WalletProvisionError: On transport failure or a rejected request
        """
        try:
            client = await self._get_client()
            response = await client.post(
                f"{self._base_url}/relay/create-safe",
                json={"chainId": chain_id},
                headers=await self._auth_headers(),
            )
        except RelayError as e:
            raise WalletProvisionError(str(e)) from e
        except httpx.HTTPError as e:
            raise WalletProvisionError(str(e) or "Network error") from e

        try:
            data = response.json()
        except ValueError:
            data = {}

        if response.is_error or not data.get("success"):
            raise WalletProvisionError(
                data.get("error") or "Failed to create Safe",
                details={"chain_id": chain_id, "status_code": response.status_code},
            )

        safe_address = (data.get("data") or {}).get("safeAddress")
        if not safe_address:
            raise WalletProvisionError(
                "Relay response missing safeAddress",
                details={"chain_id": chain_id},
            )

        logger.info(f"Relay returned Safe for chain {chain_id}")
        return safe_address

    async def close(self) -> None:
        if self._http_client is not None and self._owns_client:
            await self._http_client.aclose()
        self._http_client = None


class RelayWalletProvisioner(WalletProvisioner):
    """Wallet provisioning through the relay API."""

    def __init__(self, relay: RelayClient, chains: List[ChainConfig]):
        self._relay = relay
        self._chain_ids = {chain.key: chain.chain_id for chain in chains}

    async def get_or_create_smart_wallet(self, chain_key: str) -> str:
        chain_id = self._chain_ids.get(chain_key)
        if chain_id is None:
            raise WalletProvisionError(f"Unknown chain: {chain_key}")
        return await self._relay.create_safe(chain_id)
