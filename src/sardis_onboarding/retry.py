"""
Retry utilities with exponential backoff.

Usage:
    from sardis_onboarding.retry import RetryConfig, retry_async

    config = RetryConfig(max_attempts=5, base_delay=2.0)
    enabled = await retry_async(reader.is_module_enabled, safe, module, 421614, config=config)
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryConfig:
    """Configuration for retry behavior.

    Attributes:
        max_attempts: Total number of attempts, including the first one
        base_delay: Delay after the first failed attempt, in seconds
        exponential_base: Growth factor applied per attempt
    """

    max_attempts: int = 5
    base_delay: float = 2.0
    exponential_base: float = 1.5

    def calculate_delay(self, attempt: int) -> float:
        """Delay to wait after the given 0-based attempt failed."""
        return self.base_delay * (self.exponential_base ** attempt)


@dataclass
class RetryStats:
    """Statistics about retry execution."""

    attempts: int = 0
    last_exception: Optional[BaseException] = None


class RetryExhausted(Exception):
    """Raised when all retry attempts have been exhausted."""

    def __init__(
        self,
        message: str,
        stats: RetryStats,
        original_exception: Optional[BaseException],
    ) -> None:
        super().__init__(message)
        self.stats = stats
        self.original_exception = original_exception


async def retry_async(
    func: Callable[..., Awaitable[T]],
    *args: Any,
    config: Optional[RetryConfig] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    **kwargs: Any,
) -> T:
    """Execute an async function, retrying on exceptions.

    Only raised exceptions are retried; any returned value (including a
    falsy one) is final.

    Raises:
        RetryExhausted: If all attempts fail
    """
    if config is None:
        config = RetryConfig()

    stats = RetryStats()
    name = getattr(func, "__name__", repr(func))

    for attempt in range(config.max_attempts):
        stats.attempts = attempt + 1

        try:
            return await func(*args, **kwargs)
        except Exception as e:
            stats.last_exception = e

            if attempt >= config.max_attempts - 1:
                break

            delay = config.calculate_delay(attempt)

            logger.warning(
                f"Attempt {attempt + 1}/{config.max_attempts} for {name} failed "
                f"with {type(e).__name__}: {e}. Waiting {delay:.2f}s"
            )
            await sleep(delay)

    raise RetryExhausted(
        f"All {config.max_attempts} attempts failed for {name}",
        stats=stats,
        original_exception=stats.last_exception,
    ) from stats.last_exception
