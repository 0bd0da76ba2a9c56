"""
Transaction confirmation waiting.

Polls a receipt source until the module-enable transaction is mined:
- No receipt yet: keep polling
- Successful receipt: return it
- Reverted receipt: fail immediately
- Receipt without a status: keep polling until timeout
- Query errors, including "not found": treated as transient until timeout
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable

from .exceptions import TxReverted, TxTimeout
from .models import TransactionReceipt
from .ports import ReceiptSource

logger = logging.getLogger(__name__)


def _is_not_found(error: Exception) -> bool:
    return "not found" in str(error).lower()


class TransactionWaiter:
    """Waits for a submitted transaction to be mined."""

    def __init__(
        self,
        receipt_source: ReceiptSource,
        poll_interval: float = 2.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._receipts = receipt_source
        self._poll_interval = poll_interval
        self._clock = clock
        self._sleep = sleep

    async def wait_for_confirmation(
        self,
        tx_hash: str,
        timeout: float = 60.0,
    ) -> TransactionReceipt:
        """
        Wait for a transaction to be mined successfully.

        Args:
            tx_hash: Transaction hash
            timeout: Maximum wait time in seconds

        Returns:
            Parsed receipt of the successful transaction

        Raises:
            TxReverted: If the transaction was mined with failure status
            TxTimeout: If not confirmed within timeout
        """
        start_time = self._clock()
        polls = 0

        while self._clock() - start_time < timeout:
            polls += 1
            try:
                raw = await self._receipts.get_transaction_receipt(tx_hash)
            except Exception as e:
                if _is_not_found(e):
                    logger.debug(f"Transaction {tx_hash} not found yet (poll {polls})")
                else:
                    logger.warning(f"Receipt query for {tx_hash} failed (poll {polls}): {e}")
                await self._sleep(self._poll_interval)
                continue

            if raw:
                # A receipt that lands after the deadline is not a result
                if self._clock() - start_time >= timeout:
                    break

                receipt = TransactionReceipt.from_rpc(tx_hash, raw)
                if receipt.succeeded:
                    logger.info(
                        f"Transaction {tx_hash} confirmed in block {receipt.block_number}"
                    )
                    return receipt

                if receipt.reverted:
                    logger.error(f"Transaction {tx_hash} reverted in block {receipt.block_number}")
                    raise TxReverted(tx_hash, receipt.block_number)

                logger.warning(
                    f"Receipt for {tx_hash} has no status (poll {polls}); polling again"
                )

            await self._sleep(self._poll_interval)

        raise TxTimeout(tx_hash, timeout)
