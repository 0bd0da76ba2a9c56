"""
Per-chain onboarding state machine.

Drives three strictly ordered steps for a single chain:
1. wallet_create - obtain or create the user's Safe
2. module_sign   - switch chain context and collect the authorization signature
3. module_enable - submit, wait for confirmation, verify on-chain

A chain whose Safe already has the module enabled skips the signature
and the transaction; both steps are recorded as successful.

Every failure is caught at the step boundary and written to the chain's
progress; nothing propagates past this class except cancellation.
"""
from __future__ import annotations

import logging
from typing import Dict, Optional

from .chain_switcher import ChainSwitcher
from .config import ChainConfig, OnboardingSettings, get_settings
from .confirmation import TransactionWaiter
from .exceptions import (
    ConfigurationError,
    ModuleNotEnabled,
    OnboardingError,
    WalletProvisionError,
)
from .logging_utils import OnboardingLogger
from .models import STEP_ERROR_PREFIX, OnboardingStep, StepStatus, next_step_to_run
from .ports import (
    ChainAwareSigner,
    SignatureCollector,
    TransactionSubmitter,
    WalletProvisioner,
)
from .state import OnboardingState
from .verification import ModuleVerifier

logger = logging.getLogger(__name__)


def _error_message(error: Exception) -> str:
    if isinstance(error, OnboardingError):
        return error.message
    return str(error) or type(error).__name__


class ChainSetupStateMachine:
    """Runs and resumes the onboarding steps for one chain at a time."""

    def __init__(
        self,
        state: OnboardingState,
        wallets: WalletProvisioner,
        signatures: SignatureCollector,
        transactions: TransactionSubmitter,
        switcher: ChainSwitcher,
        waiter: TransactionWaiter,
        verifier: ModuleVerifier,
        signer: Optional[ChainAwareSigner],
        settings: Optional[OnboardingSettings] = None,
        onboarding_logger: Optional[OnboardingLogger] = None,
    ):
        self._state = state
        self._wallets = wallets
        self._signatures = signatures
        self._transactions = transactions
        self._switcher = switcher
        self._waiter = waiter
        self._verifier = verifier
        self._signer = signer
        self._settings = settings or get_settings()
        self._log = onboarding_logger or OnboardingLogger()

        # Signatures collected this session, needed to resume module_enable
        self._collected: Dict[str, str] = {}

    async def run(self, chain: ChainConfig) -> bool:
        """
        Run the chain from its first non-successful step.

        Returns:
            True if all three steps ended in success, False if a step failed
        """
        while True:
            progress = self._state.progress(chain.key)
            step = next_step_to_run(progress)
            if step is None:
                return True

            if step is OnboardingStep.MODULE_ENABLE and chain.key not in self._collected:
                # Resumed in a fresh session: the signature has to be collected again
                logger.info(f"No signature held for {chain.key}; re-running {OnboardingStep.MODULE_SIGN.value}")
                self._state.update_progress(
                    chain.key,
                    module_sign=StepStatus.IDLE,
                    module_enable=StepStatus.IDLE,
                    error=None,
                )
                continue

            if not await self._run_step(chain, step):
                return False

    async def retry(self, chain: ChainConfig) -> bool:
        """Resume a failed chain. No-op unless one of its steps is in error."""
        progress = self._state.progress(chain.key)
        if not progress.has_error:
            logger.info(f"Retry requested for {chain.key} but no step is in error")
            return progress.is_complete

        logger.info(f"Retrying {chain.key} from {next_step_to_run(progress).value}")
        return await self.run(chain)

    async def _run_step(self, chain: ChainConfig, step: OnboardingStep) -> bool:
        handlers = {
            OnboardingStep.WALLET_CREATE: self._create_wallet,
            OnboardingStep.MODULE_SIGN: self._sign_module,
            OnboardingStep.MODULE_ENABLE: self._enable_module,
        }
        try:
            await handlers[step](chain)
            return True
        except Exception as e:
            self._fail(chain, step, e)
            return False

    def _fail(self, chain: ChainConfig, step: OnboardingStep, error: Exception) -> None:
        message = f"{STEP_ERROR_PREFIX[step]}: {_error_message(error)}"
        if isinstance(error, ConfigurationError):
            logger.warning(f"CONFIG: {message} (chain {chain.key})")
        self._state.set_step(chain.key, step, StepStatus.ERROR, error=message)

    async def _create_wallet(self, chain: ChainConfig) -> None:
        step = OnboardingStep.WALLET_CREATE
        self._state.set_step(chain.key, step, StepStatus.PENDING, error=None)

        async with self._log.step_context(chain.key, step) as op:
            safe_address = await self._wallets.get_or_create_smart_wallet(chain.key)
            if not safe_address:
                raise WalletProvisionError("No Safe address returned")
            op.metadata["safe_address"] = self._log.mask(safe_address)

        self._state.set_step(chain.key, step, StepStatus.SUCCESS, safe_address=safe_address)

    async def _sign_module(self, chain: ChainConfig) -> None:
        step = OnboardingStep.MODULE_SIGN
        self._state.set_step(chain.key, step, StepStatus.PENDING, error=None)
        self._state.set_current_signing_chain(chain.key)
        already_enabled = False

        try:
            async with self._log.step_context(chain.key, step) as op:
                safe_address = self._state.progress(chain.key).safe_address
                if not safe_address:
                    raise WalletProvisionError(f"Safe address unknown for chain {chain.key}")
                if not chain.module_address:
                    raise ConfigurationError(
                        f"Module address not configured for chain {chain.chain_id}",
                        chain_id=chain.chain_id,
                        field="module_address",
                    )

                # A Safe reverts enableModule for a module it already has
                if await self._verifier.check_module_status(safe_address, chain.chain_id):
                    already_enabled = True
                    op.metadata["already_enabled"] = True
                else:
                    await self._switcher.ensure_chain_selected(chain.chain_id)
                    await self._switcher.wait_for_chain(
                        self._signer.get_current_chain_id,
                        chain.chain_id,
                        timeout=self._settings.chain_switch_timeout_seconds,
                    )

                    signature = await self._signatures.request_module_authorization_signature(
                        safe_address,
                        chain.chain_id,
                        chain.module_address,
                    )
                    self._collected[chain.key] = signature
        finally:
            self._state.set_current_signing_chain(None)

        self._state.set_step(chain.key, step, StepStatus.SUCCESS)
        if already_enabled:
            self._mark_enabled(chain, "module already enabled")

    def _mark_enabled(self, chain: ChainConfig, reason: str) -> None:
        logger.info(f"Skipping module enable transaction on {chain.key}: {reason}")
        self._collected.pop(chain.key, None)
        self._state.set_step(chain.key, OnboardingStep.MODULE_ENABLE, StepStatus.SUCCESS, error=None)

    async def _enable_module(self, chain: ChainConfig) -> None:
        step = OnboardingStep.MODULE_ENABLE
        progress = self._state.progress(chain.key)
        safe_address = progress.safe_address

        # An earlier attempt may have landed even though it was reported as failed
        if progress.module_enable == StepStatus.ERROR and await self._verifier.check_module_status(
            safe_address, chain.chain_id
        ):
            self._mark_enabled(chain, "enabled by an earlier attempt")
            return

        self._state.set_step(chain.key, step, StepStatus.PENDING, error=None)

        async with self._log.step_context(chain.key, step) as op:
            tx_hash = await self._transactions.submit_module_enable_transaction(
                safe_address,
                self._collected[chain.key],
                chain.chain_id,
            )
            op.metadata["tx_hash"] = tx_hash

            await self._waiter.wait_for_confirmation(
                tx_hash,
                timeout=self._settings.tx_confirmation_timeout_seconds,
            )

            enabled = await self._verifier.verify_module_enabled_with_retry(
                safe_address,
                chain.chain_id,
                max_retries=self._settings.verify_max_retries,
                base_delay=self._settings.verify_base_delay_seconds,
            )
            if not enabled:
                raise ModuleNotEnabled(tx_hash, chain.chain_id)

        self._collected.pop(chain.key, None)
        self._state.set_step(chain.key, step, StepStatus.SUCCESS)
