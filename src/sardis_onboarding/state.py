"""Observable onboarding state.

Holds the per-chain progress map plus session flags. Every mutation goes
through this container, which re-evaluates the completion predicate and
notifies subscribers with a fresh immutable snapshot.

Example:
    state = OnboardingState(chains)
    state.subscribe(lambda snap: render(snap))
    state.set_step("testnet", OnboardingStep.WALLET_CREATE, StepStatus.PENDING)
"""
from __future__ import annotations

import logging
from dataclasses import fields
from typing import Callable, Dict, List, Optional

from .config import ChainConfig
from .models import (
    STEP_ORDER,
    ChainProgress,
    OnboardingSnapshot,
    OnboardingStep,
    StepStatus,
)
from .relay import UserRecord

logger = logging.getLogger(__name__)

StateListener = Callable[[OnboardingSnapshot], None]

_UNSET = object()
_PROGRESS_FIELDS = {f.name for f in fields(ChainProgress)}


class OnboardingState:
    """Session-scoped onboarding state with change notification."""

    def __init__(self, chains: List[ChainConfig]):
        self._chains: List[ChainConfig] = list(chains)
        self._chains_to_setup: List[ChainConfig] = list(chains)
        self._progress: Dict[str, ChainProgress] = {
            chain.key: ChainProgress() for chain in self._chains
        }
        self._current_signing_chain: Optional[str] = None
        self._is_onboarding = False
        self._needs_onboarding = False
        self._is_checking_user = False
        self._user: Optional[UserRecord] = None
        self._listeners: List[StateListener] = []
        self._was_complete = False

    # ---- reads ----

    @property
    def chains(self) -> List[ChainConfig]:
        return list(self._chains)

    @property
    def chains_to_setup(self) -> List[ChainConfig]:
        return list(self._chains_to_setup)

    @property
    def current_signing_chain(self) -> Optional[str]:
        return self._current_signing_chain

    @property
    def is_onboarding(self) -> bool:
        return self._is_onboarding

    @property
    def needs_onboarding(self) -> bool:
        return self._needs_onboarding

    @property
    def is_checking_user(self) -> bool:
        return self._is_checking_user

    @property
    def user(self) -> Optional[UserRecord]:
        return self._user

    @property
    def is_complete(self) -> bool:
        """True exactly when every configured chain finished all three steps."""
        return all(progress.is_complete for progress in self._progress.values())

    def get_chain(self, chain_key: str) -> ChainConfig:
        for chain in self._chains:
            if chain.key == chain_key:
                return chain
        raise KeyError(f"Unknown chain: {chain_key}")

    def progress(self, chain_key: str) -> ChainProgress:
        """Live progress entry. Callers must not mutate it directly."""
        if chain_key not in self._progress:
            raise KeyError(f"Unknown chain: {chain_key}")
        return self._progress[chain_key]

    def snapshot(self) -> OnboardingSnapshot:
        return OnboardingSnapshot.build(
            tuple(self._chains_to_setup),
            self._progress,
            current_signing_chain=self._current_signing_chain,
            is_onboarding=self._is_onboarding,
            needs_onboarding=self._needs_onboarding,
            is_checking_user=self._is_checking_user,
            is_complete=self.is_complete,
            user=self._user,
        )

    # ---- writes ----

    def set_step(
        self,
        chain_key: str,
        step: OnboardingStep,
        status: StepStatus,
        error=_UNSET,
        **changes,
    ) -> None:
        """Set one step's status, enforcing in-order progression."""
        progress = self.progress(chain_key)

        if status in (StepStatus.PENDING, StepStatus.SUCCESS):
            for earlier in STEP_ORDER[: STEP_ORDER.index(step)]:
                if progress.status_of(earlier) != StepStatus.SUCCESS:
                    raise ValueError(
                        f"Cannot set {step.value}={status.value} on {chain_key}: "
                        f"{earlier.value} is {progress.status_of(earlier).value}"
                    )

        changes[step.value] = status
        if error is not _UNSET:
            changes["error"] = error
        self.update_progress(chain_key, **changes)

    def update_progress(self, chain_key: str, **changes) -> None:
        """Single write path for ChainProgress fields."""
        progress = self.progress(chain_key)
        unknown = set(changes) - _PROGRESS_FIELDS
        if unknown:
            raise ValueError(f"Unknown progress fields: {sorted(unknown)}")

        for name, value in changes.items():
            setattr(progress, name, value)
        self._changed()

    def replace_progress(self, chain_key: str, progress: ChainProgress) -> None:
        self.progress(chain_key)
        self._progress[chain_key] = progress
        self._changed()

    def set_current_signing_chain(self, chain_key: Optional[str]) -> None:
        if (
            chain_key is not None
            and self._current_signing_chain is not None
            and self._current_signing_chain != chain_key
        ):
            raise RuntimeError(
                f"Signature already outstanding for {self._current_signing_chain}"
            )
        self._current_signing_chain = chain_key
        self._changed()

    def set_user(self, user: Optional[UserRecord]) -> None:
        self._user = user
        self._changed()

    def set_chains_to_setup(self, chains: List[ChainConfig]) -> None:
        self._chains_to_setup = list(chains)
        self._changed()

    def set_flags(
        self,
        is_onboarding: Optional[bool] = None,
        needs_onboarding: Optional[bool] = None,
        is_checking_user: Optional[bool] = None,
    ) -> None:
        if is_onboarding is not None:
            self._is_onboarding = is_onboarding
        if needs_onboarding is not None:
            self._needs_onboarding = needs_onboarding
        if is_checking_user is not None:
            self._is_checking_user = is_checking_user
        self._changed()

    # ---- subscriptions ----

    def subscribe(self, listener: StateListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def unsubscribe(self, listener: StateListener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    def _changed(self) -> None:
        complete = self.is_complete
        if complete and not self._was_complete:
            self._needs_onboarding = False
            logger.info("Onboarding complete for all configured chains")
        self._was_complete = complete

        if not self._listeners:
            return

        snapshot = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                logger.error(f"Error in onboarding state listener: {e}")
