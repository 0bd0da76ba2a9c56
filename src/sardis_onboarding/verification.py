"""
On-chain verification of the Sardis module on a Safe wallet.

The retrying variant only retries query failures. A successful query that
returns False is a valid, final answer and is never retried.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional

from .config import ChainConfig, get_module_address
from .exceptions import ConfigurationError, VerificationFailed
from .ports import ModuleStatusReader
from .retry import RetryConfig, RetryExhausted, retry_async

logger = logging.getLogger(__name__)


class ModuleVerifier:
    """Checks whether the automation module is enabled for a Safe."""

    def __init__(
        self,
        reader: ModuleStatusReader,
        chains: List[ChainConfig],
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._reader = reader
        self._chains = list(chains)
        self._sleep = sleep

    def _require_module_address(self, chain_id: int) -> str:
        module_address = get_module_address(self._chains, chain_id)
        if not module_address:
            raise ConfigurationError(
                f"Module address not configured for chain {chain_id}",
                chain_id=chain_id,
                field="module_address",
            )
        return module_address

    async def is_module_enabled(self, wallet_address: str, chain_id: int) -> bool:
        """Single-shot module status query."""
        module_address = self._require_module_address(chain_id)
        return await self._reader.is_module_enabled(wallet_address, module_address, chain_id)

    async def check_module_status(self, wallet_address: str, chain_id: int) -> Optional[bool]:
        """Passive status check: None when the status cannot be determined."""
        try:
            return await self.is_module_enabled(wallet_address, chain_id)
        except Exception as e:
            logger.debug(f"Module status unavailable for {wallet_address} on {chain_id}: {e}")
            return None

    async def verify_module_enabled_with_retry(
        self,
        wallet_address: str,
        chain_id: int,
        max_retries: int = 5,
        base_delay: float = 2.0,
    ) -> bool:
        """
        Query module status, retrying failed queries with exponential backoff.

        Args:
            wallet_address: Safe wallet address
            chain_id: Chain ID
            max_retries: Total number of attempts
            base_delay: Delay after the first failure; grows by 1.5x per attempt

        Returns:
            True if the module is enabled, False otherwise

        Raises:
            ConfigurationError: If no module address is configured (no attempts made)
            VerificationFailed: If every attempt raised
        """
        module_address = self._require_module_address(chain_id)
        config = RetryConfig(max_attempts=max_retries, base_delay=base_delay)

        try:
            enabled = await retry_async(
                self._reader.is_module_enabled,
                wallet_address,
                module_address,
                chain_id,
                config=config,
                sleep=self._sleep,
            )
        except RetryExhausted as e:
            logger.error(
                f"Module verification failed for {wallet_address} on chain {chain_id} "
                f"after {e.stats.attempts} attempts"
            )
            raise VerificationFailed(max_retries, e.original_exception) from e

        logger.info(f"Module enabled={enabled} for {wallet_address} on chain {chain_id}")
        return enabled
