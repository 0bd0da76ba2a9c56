"""Exception hierarchy for smart-wallet onboarding.

All onboarding failures inherit from OnboardingError so the state machine
can convert them into per-step progress errors at a single boundary.

Usage:
    from sardis_onboarding.exceptions import OnboardingError, TxReverted

    try:
        receipt = await waiter.wait_for_confirmation(tx_hash)
    except TxReverted as e:
        logger.error(e.to_dict())
"""
from __future__ import annotations

from typing import Any, Optional


class OnboardingError(Exception):
    """Base exception for all onboarding errors.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code (e.g., "TX_REVERTED")
        details: Optional additional context
    """

    error_code: str = "ONBOARDING_ERROR"

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if error_code:
            self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to a serializable error payload."""
        result = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


class ConfigurationError(OnboardingError):
    """Missing or invalid module/factory address for a chain."""

    error_code = "CONFIGURATION_ERROR"

    def __init__(
        self,
        message: str,
        chain_id: Optional[int] = None,
        field: Optional[str] = None,
    ) -> None:
        details: dict[str, Any] = {}
        if chain_id is not None:
            details["chain_id"] = chain_id
        if field:
            details["field"] = field
        super().__init__(message, details=details)
        self.chain_id = chain_id
        self.field = field


class WalletProvisionError(OnboardingError):
    """Smart wallet could not be obtained or created."""

    error_code = "WALLET_PROVISION_ERROR"


class ChainSwitchError(OnboardingError):
    """Signer could not be pointed at the target chain."""

    error_code = "CHAIN_SWITCH_ERROR"


class ChainWaitTimeout(OnboardingError):
    """Target chain did not become active within the timeout."""

    error_code = "CHAIN_WAIT_TIMEOUT"

    def __init__(self, target_chain_id: int, timeout_seconds: float) -> None:
        super().__init__(
            f"Timeout waiting for chain {target_chain_id} to become active",
            details={
                "target_chain_id": target_chain_id,
                "timeout_seconds": timeout_seconds,
            },
        )
        self.target_chain_id = target_chain_id
        self.timeout_seconds = timeout_seconds


class SignatureError(OnboardingError):
    """Signature collection failed."""

    error_code = "SIGNATURE_ERROR"


class SignatureRejected(SignatureError):
    """User rejected the signature request in their wallet."""

    error_code = "SIGNATURE_REJECTED"


class SubmissionError(OnboardingError):
    """Module-enable transaction could not be submitted."""

    error_code = "SUBMISSION_ERROR"


class TxTimeout(OnboardingError):
    """Transaction was not confirmed within the timeout."""

    error_code = "TX_TIMEOUT"

    def __init__(self, tx_hash: str, timeout_seconds: float) -> None:
        super().__init__(
            f"Transaction {tx_hash} not confirmed within {timeout_seconds}s",
            details={"tx_hash": tx_hash, "timeout_seconds": timeout_seconds},
        )
        self.tx_hash = tx_hash
        self.timeout_seconds = timeout_seconds


class TxReverted(OnboardingError):
    """Transaction was mined but reverted. Never transient."""

    error_code = "TX_REVERTED"

    def __init__(self, tx_hash: str, block_number: Optional[int] = None) -> None:
        details: dict[str, Any] = {"tx_hash": tx_hash}
        if block_number is not None:
            details["block_number"] = block_number
        super().__init__(f"Transaction {tx_hash} failed", details=details)
        self.tx_hash = tx_hash
        self.block_number = block_number


class ModuleNotEnabled(OnboardingError):
    """Module reads as disabled after the enabling transaction was confirmed.

    Not transient: usually a wrong module address or another on-chain
    inconsistency, so it is never retried automatically.
    """

    error_code = "MODULE_NOT_ENABLED"

    def __init__(self, tx_hash: str, chain_id: int) -> None:
        super().__init__(
            f"module not enabled on-chain after confirmed transaction {tx_hash}",
            details={"tx_hash": tx_hash, "chain_id": chain_id},
        )
        self.tx_hash = tx_hash
        self.chain_id = chain_id


class VerificationFailed(OnboardingError):
    """Every attempt to query module status raised an error."""

    error_code = "VERIFICATION_FAILED"

    def __init__(
        self,
        attempts: int,
        last_error: Optional[BaseException] = None,
    ) -> None:
        reason = str(last_error) if last_error is not None else "Unknown error"
        super().__init__(
            f"Failed to verify module status after {attempts} attempts: {reason}",
            details={"attempts": attempts},
        )
        self.attempts = attempts
        self.last_error = last_error


__all__ = [
    "OnboardingError",
    "ConfigurationError",
    "WalletProvisionError",
    "ChainSwitchError",
    "ChainWaitTimeout",
    "SignatureError",
    "SignatureRejected",
    "SubmissionError",
    "TxTimeout",
    "TxReverted",
    "VerificationFailed",
    "ModuleNotEnabled",
]
