"""
Chain switching for onboarding.

Ensures the embedded wallet points at the target chain before any
chain-specific signing happens.
"""
from __future__ import annotations

import asyncio
import inspect
import logging
import time
from typing import Awaitable, Callable, Optional, Union

from .exceptions import ChainSwitchError, ChainWaitTimeout
from .ports import ChainAwareSigner

logger = logging.getLogger(__name__)

ChainIdPoll = Callable[[], Union[Optional[int], Awaitable[Optional[int]]]]


class ChainSwitcher:
    """Requests chain switches and waits for them to take effect."""

    def __init__(
        self,
        signer: Optional[ChainAwareSigner],
        poll_interval: float = 0.1,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._signer = signer
        self._poll_interval = poll_interval
        self._clock = clock
        self._sleep = sleep

    async def ensure_chain_selected(self, target_chain_id: int) -> None:
        """
        Ask the signer to switch to the target chain.

        Raises:
            ChainSwitchError: If no signer is available or the switch fails
        """
        if self._signer is None:
            raise ChainSwitchError("Embedded wallet not available")

        try:
            await self._signer.request_chain_switch(target_chain_id)
        except Exception as e:
            message = e.message if isinstance(e, ChainSwitchError) else str(e)
            raise ChainSwitchError(
                f"Failed to switch to chain {target_chain_id}: {message}",
                details={"target_chain_id": target_chain_id},
            ) from e

        logger.debug(f"Requested switch to chain {target_chain_id}")

    async def wait_for_chain(
        self,
        poll_current_chain_id: ChainIdPoll,
        target_chain_id: int,
        timeout: float = 5.0,
    ) -> None:
        """
        Poll until the active chain equals the target.

        Pure observation loop: safe to cancel at any await point.

        Raises:
            ChainWaitTimeout: If the chain does not match within timeout
        """
        start_time = self._clock()

        while self._clock() - start_time < timeout:
            current = poll_current_chain_id()
            if inspect.isawaitable(current):
                current = await current

            if current == target_chain_id:
                logger.debug(f"Chain {target_chain_id} active")
                return

            await self._sleep(self._poll_interval)

        raise ChainWaitTimeout(target_chain_id, timeout)
