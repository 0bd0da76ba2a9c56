"""Abstract interfaces for onboarding collaborators.

The orchestrator reaches the embedded wallet, the relay API and the chain
only through these ports. Relay and RPC adapters live in relay.py,
rpc_client.py and safe_account.py.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional


class WalletProvisioner(ABC):
    """Obtains or creates the user's smart wallet on a chain."""

    @abstractmethod
    async def get_or_create_smart_wallet(self, chain_key: str) -> str:
        """Return the Safe address for the chain. Raises WalletProvisionError."""
        pass


class SignatureCollector(ABC):
    """Collects the user's module authorization signature."""

    @abstractmethod
    async def request_module_authorization_signature(
        self,
        wallet_address: str,
        chain_id: int,
        module_address: str,
    ) -> str:
        """Return the signature. Raises SignatureRejected or SignatureError."""
        pass


class TransactionSubmitter(ABC):
    """Submits the module-enable transaction."""

    @abstractmethod
    async def submit_module_enable_transaction(
        self,
        wallet_address: str,
        signature: str,
        chain_id: int,
    ) -> str:
        """Return the transaction hash. Raises SubmissionError."""
        pass


class ChainAwareSigner(ABC):
    """The active embedded wallet, as far as chain context is concerned."""

    @abstractmethod
    def get_current_chain_id(self) -> Optional[int]:
        """Chain the signer currently points at, or None if unknown."""
        pass

    @abstractmethod
    async def request_chain_switch(self, chain_id: int) -> None:
        """Ask the signer to switch chains. Raises on failure."""
        pass


class ModuleStatusReader(ABC):
    """Reads Safe.isModuleEnabled from chain state."""

    @abstractmethod
    async def is_module_enabled(
        self,
        wallet_address: str,
        module_address: str,
        chain_id: int,
    ) -> bool:
        pass


class ReceiptSource(ABC):
    """Source of transaction receipts."""

    @abstractmethod
    async def get_transaction_receipt(self, tx_hash: str) -> Optional[Dict[str, Any]]:
        """Return the raw receipt, or None if not yet mined."""
        pass
