"""Multi-chain Safe wallet onboarding exports."""

from .chain_switcher import ChainSwitcher
from .config import (
    ChainConfig,
    OnboardingSettings,
    get_selectable_chains,
    get_settings,
    validate_chain_configs,
)
from .confirmation import TransactionWaiter
from .exceptions import (
    ChainSwitchError,
    ChainWaitTimeout,
    ConfigurationError,
    ModuleNotEnabled,
    OnboardingError,
    SignatureError,
    SignatureRejected,
    SubmissionError,
    TxReverted,
    TxTimeout,
    VerificationFailed,
    WalletProvisionError,
)
from .models import (
    ChainProgress,
    OnboardingSnapshot,
    OnboardingStep,
    StepStatus,
    TransactionReceipt,
    next_step_to_run,
)
from .orchestrator import OnboardingOrchestrator
from .relay import RelayClient, RelayWalletProvisioner, UserRecord
from .state import OnboardingState
from .state_machine import ChainSetupStateMachine
from .verification import ModuleVerifier

__all__ = [
    "ChainSwitcher",
    "ChainConfig",
    "OnboardingSettings",
    "get_selectable_chains",
    "get_settings",
    "validate_chain_configs",
    "TransactionWaiter",
    "ChainSwitchError",
    "ChainWaitTimeout",
    "ConfigurationError",
    "ModuleNotEnabled",
    "OnboardingError",
    "SignatureError",
    "SignatureRejected",
    "SubmissionError",
    "TxReverted",
    "TxTimeout",
    "VerificationFailed",
    "WalletProvisionError",
    "ChainProgress",
    "OnboardingSnapshot",
    "OnboardingStep",
    "StepStatus",
    "TransactionReceipt",
    "next_step_to_run",
    "OnboardingOrchestrator",
    "RelayClient",
    "RelayWalletProvisioner",
    "UserRecord",
    "OnboardingState",
    "ChainSetupStateMachine",
    "ModuleVerifier",
]
