"""
Pytest configuration for sardis-onboarding tests.
"""
from __future__ import annotations

import asyncio
import os
import sys
from pathlib import Path
from typing import Dict, List, Optional

import pytest

# Add package source to path
package_src = Path(__file__).parent.parent / "src"
if str(package_src) not in sys.path:
    sys.path.insert(0, str(package_src))

# Set test environment
os.environ.setdefault("SARDIS_ONBOARDING_USE_TESTNET_ONLY", "true")

from sardis_onboarding.config import ChainConfig, OnboardingSettings
from sardis_onboarding.exceptions import SignatureRejected
from sardis_onboarding.ports import (
    ChainAwareSigner,
    ModuleStatusReader,
    ReceiptSource,
    SignatureCollector,
    TransactionSubmitter,
    WalletProvisioner,
)

MODULE_ADDRESS = "0x5FbDB2315678afecb367f032d93F642f64180aa3"
FACTORY_ADDRESS = "0xe7f1725E7734CE288F8367e1Bb143E90bb3F0512"
SAFE_A = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
SAFE_B = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"
OWNER = "0x3C44CdDdB6a900fa2b585dd299e03d12FA4293BC"

SUCCESS_RECEIPT = {"status": "0x1", "blockNumber": "0x10", "gasUsed": "0x5208"}
REVERTED_RECEIPT = {"status": "0x0", "blockNumber": "0x11", "gasUsed": "0x5208"}


class FakeClock:
    """Deterministic clock whose sleep advances time instead of waiting."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: List[float] = []

    def time(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)


class FakeSigner(ChainAwareSigner):
    """Embedded wallet that switches chains on request."""

    def __init__(self, chain_id: Optional[int] = None, switch_error: Optional[Exception] = None):
        self.chain_id = chain_id
        self.switch_error = switch_error
        self.switch_requests: List[int] = []

    def get_current_chain_id(self) -> Optional[int]:
        return self.chain_id

    async def request_chain_switch(self, chain_id: int) -> None:
        self.switch_requests.append(chain_id)
        if self.switch_error is not None:
            raise self.switch_error
        self.chain_id = chain_id


class FakeWallets(WalletProvisioner):
    def __init__(self, addresses: Dict[str, str], errors: Optional[Dict[str, Exception]] = None):
        self.addresses = addresses
        self.errors = dict(errors or {})
        self.calls: List[str] = []

    async def get_or_create_smart_wallet(self, chain_key: str) -> str:
        self.calls.append(chain_key)
        if chain_key in self.errors:
            raise self.errors.pop(chain_key)
        return self.addresses[chain_key]


class FakeSignatures(SignatureCollector):
    def __init__(self, rejected_chain_ids: Optional[set] = None):
        self.rejected_chain_ids = set(rejected_chain_ids or ())
        self.calls: List[tuple] = []
        self.blocker: Optional[asyncio.Event] = None

    async def request_module_authorization_signature(
        self,
        wallet_address: str,
        chain_id: int,
        module_address: str,
    ) -> str:
        self.calls.append((wallet_address, chain_id, module_address))
        if self.blocker is not None:
            await self.blocker.wait()
        if chain_id in self.rejected_chain_ids:
            raise SignatureRejected("User rejected the request")
        return f"0xsig{chain_id}"


class FakeTransactions(TransactionSubmitter):
    def __init__(self, errors: Optional[List[Exception]] = None):
        self.errors = list(errors or [])
        self.calls: List[tuple] = []
        self.submitted: List[tuple] = []

    async def submit_module_enable_transaction(
        self,
        wallet_address: str,
        signature: str,
        chain_id: int,
    ) -> str:
        self.calls.append((wallet_address, signature, chain_id))
        if self.errors:
            raise self.errors.pop(0)
        self.submitted.append((wallet_address, chain_id))
        return "0x" + f"{chain_id:064x}"


class FakeReceipts(ReceiptSource):
    """Returns queued results in order; the last one repeats."""

    def __init__(self, results: Optional[list] = None):
        self.results = list(results or [SUCCESS_RECEIPT])
        self.calls: List[str] = []

    async def get_transaction_receipt(self, tx_hash: str):
        self.calls.append(tx_hash)
        result = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(result, Exception):
            raise result
        return result


class FakeModuleReader(ModuleStatusReader):
    """Returns queued results in order; the last one repeats."""

    def __init__(self, results: Optional[list] = None):
        self.results = list(results if results is not None else [True])
        self.calls: List[tuple] = []

    async def is_module_enabled(self, wallet_address: str, module_address: str, chain_id: int) -> bool:
        self.calls.append((wallet_address, module_address, chain_id))
        result = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(result, Exception):
            raise result
        return result


class FakeSafeModules(ModuleStatusReader):
    """Safes whose module turns on once an enable transaction is submitted."""

    def __init__(self, enabled: Optional[set] = None):
        self.enabled = set(enabled or ())
        self.transactions: Optional[FakeTransactions] = None
        self.calls: List[tuple] = []

    async def is_module_enabled(self, wallet_address: str, module_address: str, chain_id: int) -> bool:
        self.calls.append((wallet_address, module_address, chain_id))
        submitted = self.transactions.submitted if self.transactions is not None else []
        return (wallet_address, chain_id) in self.enabled or (wallet_address, chain_id) in submitted


class Harness:
    """Orchestrator wired to fakes and a fake clock."""

    def __init__(
        self,
        chains: List[ChainConfig],
        settings: OnboardingSettings,
        clock: FakeClock,
        wallets: Optional[FakeWallets] = None,
        signatures: Optional[FakeSignatures] = None,
        transactions: Optional[FakeTransactions] = None,
        receipts: Optional[FakeReceipts] = None,
        reader: Optional[ModuleStatusReader] = None,
        signer: Optional[FakeSigner] = None,
        relay=None,
    ):
        from sardis_onboarding.chain_switcher import ChainSwitcher
        from sardis_onboarding.confirmation import TransactionWaiter
        from sardis_onboarding.orchestrator import OnboardingOrchestrator
        from sardis_onboarding.state import OnboardingState
        from sardis_onboarding.state_machine import ChainSetupStateMachine
        from sardis_onboarding.verification import ModuleVerifier

        self.clock = clock
        self.wallets = wallets or FakeWallets({"testnet": SAFE_A, "mainnet": SAFE_B})
        self.signatures = signatures or FakeSignatures()
        self.transactions = transactions or FakeTransactions()
        self.receipts = receipts or FakeReceipts()
        self.reader = reader or FakeSafeModules()
        if isinstance(self.reader, FakeSafeModules) and self.reader.transactions is None:
            self.reader.transactions = self.transactions
        self.signer = signer if signer is not None else FakeSigner(chain_id=1)

        self.state = OnboardingState(chains)
        self.verifier = ModuleVerifier(self.reader, chains, sleep=clock.sleep)
        self.machine = ChainSetupStateMachine(
            state=self.state,
            wallets=self.wallets,
            signatures=self.signatures,
            transactions=self.transactions,
            switcher=ChainSwitcher(self.signer, clock=clock.time, sleep=clock.sleep),
            waiter=TransactionWaiter(self.receipts, clock=clock.time, sleep=clock.sleep),
            verifier=self.verifier,
            signer=self.signer,
            settings=settings,
        )
        self.orchestrator = OnboardingOrchestrator(
            chains,
            state_machine=self.machine,
            state=self.state,
            verifier=self.verifier,
            relay=relay,
        )


@pytest.fixture
def chain_a() -> ChainConfig:
    return ChainConfig(
        key="testnet",
        chain_id=421614,
        name="Arbitrum Sepolia",
        module_address=MODULE_ADDRESS,
        wallet_factory_address=FACTORY_ADDRESS,
        is_testnet=True,
        rpc_url="https://rpc.testnet.example",
    )


@pytest.fixture
def chain_b() -> ChainConfig:
    return ChainConfig(
        key="mainnet",
        chain_id=42161,
        name="Arbitrum Mainnet",
        module_address=MODULE_ADDRESS,
        wallet_factory_address=FACTORY_ADDRESS,
        rpc_url="https://rpc.mainnet.example",
    )


@pytest.fixture
def chains(chain_a, chain_b) -> List[ChainConfig]:
    return [chain_a, chain_b]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def harness(chains, settings, clock):
    def factory(**overrides) -> Harness:
        return Harness(overrides.pop("chains", chains), settings, clock, **overrides)
    return factory


@pytest.fixture
def settings() -> OnboardingSettings:
    return OnboardingSettings(
        testnet_module_address=MODULE_ADDRESS,
        testnet_wallet_factory_address=FACTORY_ADDRESS,
        mainnet_module_address=MODULE_ADDRESS,
        mainnet_wallet_factory_address=FACTORY_ADDRESS,
    )
