"""
Multi-chain onboarding orchestrator.

Runs one ChainSetupStateMachine at a time over the chains that need setup.
Signing is a single-focus, user-interactive operation, so chains are never
processed concurrently: chain i+1 starts only after chain i reaches a
terminal outcome. A failed chain does not stop the remaining chains.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, List, Optional

from .chain_switcher import ChainSwitcher
from .config import ChainConfig, OnboardingSettings, get_settings, validate_chain_configs
from .confirmation import TransactionWaiter
from .logging_utils import OnboardingLogger
from .models import STEP_ORDER, ChainProgress, OnboardingSnapshot, StepStatus
from .ports import (
    ChainAwareSigner,
    ReceiptSource,
    SignatureCollector,
    TransactionSubmitter,
    WalletProvisioner,
)
from .relay import RelayClient, UserRecord
from .state import OnboardingState, StateListener
from .state_machine import ChainSetupStateMachine
from .verification import ModuleVerifier

logger = logging.getLogger(__name__)


class OnboardingOrchestrator:
    """
    Owns onboarding state for one user session.

    Example:
        orchestrator = OnboardingOrchestrator.create(chains, wallets=..., ...)
        await orchestrator.check_user(owner_address)
        if orchestrator.snapshot().needs_onboarding:
            await orchestrator.start_onboarding()
    """

    def __init__(
        self,
        chains: List[ChainConfig],
        state_machine: ChainSetupStateMachine,
        state: OnboardingState,
        verifier: ModuleVerifier,
        relay: Optional[RelayClient] = None,
        onboarding_logger: Optional[OnboardingLogger] = None,
    ):
        self._chains = list(chains)
        self._machine = state_machine
        self._state = state
        self._verifier = verifier
        self._relay = relay
        self._log = onboarding_logger or OnboardingLogger()
        self._active_task: Optional[asyncio.Task] = None
        self._owner_address: Optional[str] = None

        self.config_issues = validate_chain_configs(self._chains)

    @classmethod
    def create(
        cls,
        chains: List[ChainConfig],
        wallets: WalletProvisioner,
        signatures: SignatureCollector,
        transactions: TransactionSubmitter,
        receipts: ReceiptSource,
        verifier: ModuleVerifier,
        signer: Optional[ChainAwareSigner],
        relay: Optional[RelayClient] = None,
        settings: Optional[OnboardingSettings] = None,
    ) -> "OnboardingOrchestrator":
        """Wire the default switcher, waiter and state machine."""
        settings = settings or get_settings()
        state = OnboardingState(chains)
        onboarding_logger = OnboardingLogger()
        machine = ChainSetupStateMachine(
            state=state,
            wallets=wallets,
            signatures=signatures,
            transactions=transactions,
            switcher=ChainSwitcher(signer, poll_interval=settings.chain_poll_interval_seconds),
            waiter=TransactionWaiter(receipts, poll_interval=settings.tx_poll_interval_seconds),
            verifier=verifier,
            signer=signer,
            settings=settings,
            onboarding_logger=onboarding_logger,
        )
        return cls(
            chains,
            state_machine=machine,
            state=state,
            verifier=verifier,
            relay=relay,
            onboarding_logger=onboarding_logger,
        )

    # ---- presentation surface ----

    @property
    def state(self) -> OnboardingState:
        return self._state

    @property
    def is_complete(self) -> bool:
        return self._state.is_complete

    def snapshot(self) -> OnboardingSnapshot:
        return self._state.snapshot()

    def subscribe(self, listener: StateListener) -> None:
        self._state.subscribe(listener)

    def unsubscribe(self, listener: StateListener) -> None:
        self._state.unsubscribe(listener)

    # ---- eligibility ----

    async def check_user(self, owner_address: str) -> bool:
        """
        Determine which chains still need onboarding.

        Chains with a known Safe whose module is already enabled are
        pre-filled as complete and dropped from chains_to_setup.

        Returns:
            True if onboarding is needed
        """
        self._owner_address = owner_address
        self._state.set_flags(is_checking_user=True)
        try:
            user = await self._fetch_user()
            self._state.set_user(user)

            pending: List[ChainConfig] = []
            for chain in self._chains:
                safe_address = user.safe_address_for(chain.key) if user else None
                enabled = None
                if safe_address:
                    enabled = await self._verifier.check_module_status(safe_address, chain.chain_id)

                if enabled:
                    self._state.replace_progress(chain.key, ChainProgress.completed(safe_address))
                else:
                    pending.append(chain)

            self._state.set_chains_to_setup(pending)
            self._state.set_flags(needs_onboarding=bool(pending))
            self._log.log_session_event(
                "eligibility_checked",
                pending=[chain.key for chain in pending],
            )
            return bool(pending)
        finally:
            self._state.set_flags(is_checking_user=False)

    async def _fetch_user(self) -> Optional[UserRecord]:
        if self._relay is None or self._owner_address is None:
            return None
        try:
            return await self._relay.fetch_user(self._owner_address)
        except Exception as e:
            logger.error(f"Failed to fetch user data for {self._log.mask(self._owner_address)}: {e}")
            return None

    async def _refresh_user(self) -> None:
        """Re-read the user record so newly created Safes show up."""
        user = await self._fetch_user()
        if user is not None:
            self._state.set_user(user)

    def skip_onboarding(self) -> None:
        """Dismiss onboarding for this session."""
        self._state.set_flags(is_onboarding=False, needs_onboarding=False)
        self._log.log_session_event("skipped")

    # ---- execution ----

    async def start_onboarding(self) -> None:
        """Run every pending chain in order. No-op while already onboarding."""
        if self._state.is_onboarding or self._busy():
            logger.debug("start_onboarding ignored: onboarding already in progress")
            return

        self._state.set_flags(is_onboarding=True)
        self._log.log_session_event(
            "started",
            chains=[chain.key for chain in self._state.chains_to_setup],
        )
        await self._run_tracked(self._run_all())

    async def retry_chain(self, chain_key: str) -> None:
        """Resume a single failed chain without touching the others."""
        chain = next((c for c in self._state.chains_to_setup if c.key == chain_key), None)
        if chain is None:
            logger.warning(f"Retry for {chain_key} ignored: not a chain pending setup")
            return
        progress = self._state.progress(chain_key)

        if self._busy():
            logger.info(f"Retry for {chain_key} ignored: another chain is running")
            return
        if not progress.has_error:
            logger.info(f"Retry for {chain_key} ignored: no failed step")
            return

        await self._run_tracked(self._machine.retry(chain))

    async def close(self) -> None:
        """
        Abandon the session: cancel outstanding polls and signature requests.

        On-chain effects are not rolled back; steps that were in flight are
        returned to idle so a later session resumes from them.
        """
        task = self._active_task
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._reset_in_flight()
        self._log.log_session_event("closed")

    def _busy(self) -> bool:
        return self._active_task is not None and not self._active_task.done()

    async def _run_tracked(self, work: Awaitable[Any]) -> Any:
        self._active_task = asyncio.ensure_future(work)
        try:
            return await self._active_task
        finally:
            self._active_task = None

    async def _run_all(self) -> None:
        results = {}
        try:
            for chain in self._state.chains_to_setup:
                if self._state.progress(chain.key).is_complete:
                    continue
                results[chain.key] = await self._machine.run(chain)
            await self._refresh_user()
        finally:
            self._state.set_flags(is_onboarding=False)
            self._log.log_session_event(
                "finished",
                results=results,
                complete=self._state.is_complete,
            )

    def _reset_in_flight(self) -> None:
        if self._state.current_signing_chain is not None:
            self._state.set_current_signing_chain(None)
        for chain in self._chains:
            progress = self._state.progress(chain.key)
            reset = {
                step.value: StepStatus.IDLE
                for step in STEP_ORDER
                if progress.status_of(step) == StepStatus.PENDING
            }
            if reset:
                self._state.update_progress(chain.key, **reset)
        if self._state.is_onboarding:
            self._state.set_flags(is_onboarding=False)
