"""Onboarding progress models."""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

from .config import ChainConfig
from .relay import UserRecord


class StepStatus(str, Enum):
    """Status of a single onboarding step."""
    IDLE = "idle"
    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"


class OnboardingStep(str, Enum):
    """Onboarding steps in execution order."""
    WALLET_CREATE = "wallet_create"
    MODULE_SIGN = "module_sign"
    MODULE_ENABLE = "module_enable"


STEP_ORDER: Tuple[OnboardingStep, ...] = (
    OnboardingStep.WALLET_CREATE,
    OnboardingStep.MODULE_SIGN,
    OnboardingStep.MODULE_ENABLE,
)

# Prefix stored in front of every step error message
STEP_ERROR_PREFIX = {
    OnboardingStep.WALLET_CREATE: "Wallet creation failed",
    OnboardingStep.MODULE_SIGN: "Module signature failed",
    OnboardingStep.MODULE_ENABLE: "Module enable failed",
}


@dataclass
class ChainProgress:
    """Per-chain onboarding progress."""
    wallet_create: StepStatus = StepStatus.IDLE
    module_sign: StepStatus = StepStatus.IDLE
    module_enable: StepStatus = StepStatus.IDLE
    error: Optional[str] = None
    safe_address: Optional[str] = None

    def status_of(self, step: OnboardingStep) -> StepStatus:
        return getattr(self, step.value)

    @property
    def is_complete(self) -> bool:
        return all(self.status_of(step) == StepStatus.SUCCESS for step in STEP_ORDER)

    @property
    def has_error(self) -> bool:
        return any(self.status_of(step) == StepStatus.ERROR for step in STEP_ORDER)

    @property
    def is_pending(self) -> bool:
        return any(self.status_of(step) == StepStatus.PENDING for step in STEP_ORDER)

    @classmethod
    def completed(cls, safe_address: Optional[str] = None) -> "ChainProgress":
        """Progress for a chain whose module is already enabled."""
        return cls(
            wallet_create=StepStatus.SUCCESS,
            module_sign=StepStatus.SUCCESS,
            module_enable=StepStatus.SUCCESS,
            safe_address=safe_address,
        )

    def to_dict(self) -> dict:
        return {
            "wallet_create": self.wallet_create.value,
            "module_sign": self.module_sign.value,
            "module_enable": self.module_enable.value,
            "error": self.error,
            "safe_address": self.safe_address,
        }


def next_step_to_run(progress: ChainProgress) -> Optional[OnboardingStep]:
    """Return the first step that is not yet successful, or None when done."""
    for step in STEP_ORDER:
        if progress.status_of(step) != StepStatus.SUCCESS:
            return step
    return None


@dataclass(frozen=True)
class OnboardingSnapshot:
    """Read-only view of orchestrator state for the presentation layer."""
    chains_to_setup: Tuple[ChainConfig, ...]
    progress: Mapping[str, ChainProgress]
    current_signing_chain: Optional[str] = None
    is_onboarding: bool = False
    needs_onboarding: bool = False
    is_checking_user: bool = False
    is_complete: bool = False
    user: Optional[UserRecord] = None

    @classmethod
    def build(
        cls,
        chains_to_setup: Tuple[ChainConfig, ...],
        progress: Mapping[str, ChainProgress],
        **flags,
    ) -> "OnboardingSnapshot":
        # Copies so later writes to live progress never leak into a snapshot
        frozen = {key: replace(value) for key, value in progress.items()}
        return cls(
            chains_to_setup=tuple(chains_to_setup),
            progress=MappingProxyType(frozen),
            **flags,
        )

    def to_dict(self) -> dict:
        return {
            "chains_to_setup": [chain.key for chain in self.chains_to_setup],
            "progress": {key: value.to_dict() for key, value in self.progress.items()},
            "current_signing_chain": self.current_signing_chain,
            "is_onboarding": self.is_onboarding,
            "needs_onboarding": self.needs_onboarding,
            "is_checking_user": self.is_checking_user,
            "is_complete": self.is_complete,
            "user": self.user.model_dump() if self.user is not None else None,
        }


@dataclass(frozen=True)
class TransactionReceipt:
    """Mined transaction outcome."""
    tx_hash: str
    status: Optional[int]  # 1 = success, 0 = reverted, None = not reported
    block_number: Optional[int] = None
    gas_used: Optional[int] = None
    raw: Mapping = field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.status == 1

    @property
    def reverted(self) -> bool:
        return self.status == 0

    @staticmethod
    def _parse_int(value) -> Optional[int]:
        if value is None:
            return None
        if isinstance(value, str):
            return int(value, 16) if value.startswith("0x") else int(value)
        return int(value)

    @classmethod
    def from_rpc(cls, tx_hash: str, receipt: Mapping) -> "TransactionReceipt":
        """Parse an eth_getTransactionReceipt result."""
        return cls(
            tx_hash=receipt.get("transactionHash") or tx_hash,
            status=cls._parse_int(receipt.get("status")),
            block_number=cls._parse_int(receipt.get("blockNumber")),
            gas_used=cls._parse_int(receipt.get("gasUsed")),
            raw=MappingProxyType(dict(receipt)),
        )
