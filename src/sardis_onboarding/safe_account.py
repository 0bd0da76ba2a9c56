"""Safe Smart Account helpers for reading module status.

Wraps the Safe ModuleManager view isModuleEnabled(address) -> bool.

References:
- https://github.com/safe-global/safe-smart-account
"""

from __future__ import annotations

import logging
from typing import Dict

from eth_abi import decode, encode
from web3 import Web3

from .ports import ModuleStatusReader
from .rpc_client import ProductionRPCClient

logger = logging.getLogger(__name__)

IS_MODULE_ENABLED_SELECTOR = bytes(Web3.keccak(text="isModuleEnabled(address)")[:4])


def encode_is_module_enabled(module_address: str) -> str:
    """Encode Safe.isModuleEnabled(module) calldata."""
    params = encode(["address"], [Web3.to_checksum_address(module_address)])
    return "0x" + (IS_MODULE_ENABLED_SELECTOR + params).hex()


def decode_bool_result(result: str) -> bool:
    """Decode an eth_call bool return value.

    Raises:
        ValueError: If the call returned no data (e.g. no contract deployed)
    """
    data = bytes.fromhex(result[2:] if result.startswith("0x") else result)
    if not data:
        raise ValueError("Empty eth_call result; is the Safe deployed?")
    (value,) = decode(["bool"], data)
    return bool(value)


class SafeModuleStatusReader(ModuleStatusReader):
    """Reads module status from Safe contracts over JSON-RPC."""

    def __init__(self, clients: Dict[int, ProductionRPCClient]):
        self._clients = dict(clients)

    async def is_module_enabled(
        self,
        wallet_address: str,
        module_address: str,
        chain_id: int,
    ) -> bool:
        client = self._clients.get(chain_id)
        if client is None:
            raise ValueError(f"No RPC client configured for chain {chain_id}")

        result = await client.eth_call(
            {
                "to": Web3.to_checksum_address(wallet_address),
                "data": encode_is_module_enabled(module_address),
            }
        )
        enabled = decode_bool_result(result)
        logger.debug(f"isModuleEnabled({module_address}) on {wallet_address} = {enabled}")
        return enabled
