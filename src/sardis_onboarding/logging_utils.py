"""
Logging utilities for onboarding operations.

Features:
- Structured per-step logging (started / succeeded / failed with duration)
- Session lifecycle events
- Address masking
"""
from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, Optional

from .models import OnboardingStep

logger = logging.getLogger(__name__)


@dataclass
class LoggingConfig:
    """Configuration for onboarding logging."""
    step_level: str = "INFO"
    error_level: str = "ERROR"
    mask_addresses: bool = True


@dataclass
class StepOperation:
    """Context for one attempt at a step."""
    operation_id: str
    chain_key: str
    step: OnboardingStep
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    duration_ms: Optional[float] = None
    success: bool = False
    error: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "operation_id": self.operation_id,
            "chain": self.chain_key,
            "step": self.step.value,
            "started_at": self.started_at.isoformat(),
            "duration_ms": self.duration_ms,
            "success": self.success,
            "error": self.error,
            "metadata": self.metadata,
        }


class OnboardingLogger:
    """Structured logger for onboarding steps."""

    def __init__(
        self,
        name: str = "sardis_onboarding",
        config: Optional[LoggingConfig] = None,
    ):
        self._logger = logging.getLogger(name)
        self._config = config or LoggingConfig()
        self._operation_counter = 0

    def _generate_operation_id(self) -> str:
        self._operation_counter += 1
        timestamp = int(time.time() * 1000)
        return f"onb_{timestamp}_{self._operation_counter}"

    def _get_level(self, level_str: str) -> int:
        return getattr(logging, level_str.upper(), logging.INFO)

    def mask(self, address: Optional[str]) -> Optional[str]:
        if not address or not self._config.mask_addresses:
            return address
        return mask_address(address)

    @asynccontextmanager
    async def step_context(
        self,
        chain_key: str,
        step: OnboardingStep,
        **metadata,
    ) -> AsyncIterator[StepOperation]:
        """
        Track one step attempt.

        Usage:
            async with onboarding_logger.step_context("testnet", OnboardingStep.WALLET_CREATE) as op:
                op.metadata["safe_address"] = address
        """
        op = StepOperation(
            operation_id=self._generate_operation_id(),
            chain_key=chain_key,
            step=step,
            metadata=metadata,
        )
        start = time.monotonic()

        self._logger.debug(
            f"Starting {step.value} on {chain_key}",
            extra={"operation": op.to_dict()},
        )

        try:
            yield op
            op.success = True
        except Exception as e:
            op.error = str(e)
            raise
        finally:
            op.duration_ms = (time.monotonic() - start) * 1000
            level = (
                self._get_level(self._config.step_level)
                if op.success
                else self._get_level(self._config.error_level)
            )
            self._logger.log(
                level,
                f"Completed {step.value} on {chain_key} in {op.duration_ms:.0f}ms "
                f"(success={op.success})",
                extra={"operation": op.to_dict()},
            )

    def log_session_event(self, event: str, **data) -> None:
        self._logger.info(f"Onboarding {event}", extra={"onboarding": data})


def mask_address(address: str) -> str:
    """Mask middle portion of address for privacy."""
    if len(address) < 10:
        return address
    return f"{address[:6]}...{address[-4:]}"
