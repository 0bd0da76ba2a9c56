"""Tests for sardis_onboarding.verification and retry."""
from __future__ import annotations

import pytest

from conftest import MODULE_ADDRESS, SAFE_A, FakeModuleReader
from sardis_onboarding.config import ChainConfig
from sardis_onboarding.exceptions import ConfigurationError, VerificationFailed
from sardis_onboarding.retry import RetryConfig, RetryExhausted, retry_async
from sardis_onboarding.verification import ModuleVerifier


@pytest.fixture
def unconfigured_chain() -> ChainConfig:
    return ChainConfig(
        key="mainnet",
        chain_id=42161,
        name="Arbitrum Mainnet",
        module_address="",
        wallet_factory_address="",
    )


class TestIsModuleEnabled:
    @pytest.mark.asyncio
    async def test_single_shot(self, chain_a):
        reader = FakeModuleReader([True])
        verifier = ModuleVerifier(reader, [chain_a])

        assert await verifier.is_module_enabled(SAFE_A, 421614) is True
        assert reader.calls == [(SAFE_A, MODULE_ADDRESS, 421614)]

    @pytest.mark.asyncio
    async def test_does_not_retry(self, chain_a):
        reader = FakeModuleReader([RuntimeError("rpc down")])
        verifier = ModuleVerifier(reader, [chain_a])

        with pytest.raises(RuntimeError):
            await verifier.is_module_enabled(SAFE_A, 421614)
        assert len(reader.calls) == 1

    @pytest.mark.asyncio
    async def test_check_module_status_maps_failure_to_none(self, chain_a):
        verifier = ModuleVerifier(FakeModuleReader([RuntimeError("rpc down")]), [chain_a])

        assert await verifier.check_module_status(SAFE_A, 421614) is None


class TestVerifyModuleEnabledWithRetry:
    @pytest.mark.asyncio
    async def test_fails_twice_then_succeeds(self, chain_a, clock):
        """Should succeed on the third attempt after two growing backoff sleeps."""
        reader = FakeModuleReader([RuntimeError("timeout"), RuntimeError("timeout"), True])
        verifier = ModuleVerifier(reader, [chain_a], sleep=clock.sleep)

        result = await verifier.verify_module_enabled_with_retry(SAFE_A, 421614)

        assert result is True
        assert len(reader.calls) == 3
        assert clock.sleeps == [2.0, 3.0]

    @pytest.mark.asyncio
    async def test_false_is_final(self, chain_a, clock):
        """Should return False immediately without further attempts."""
        reader = FakeModuleReader([False])
        verifier = ModuleVerifier(reader, [chain_a], sleep=clock.sleep)

        result = await verifier.verify_module_enabled_with_retry(SAFE_A, 421614)

        assert result is False
        assert len(reader.calls) == 1
        assert clock.sleeps == []

    @pytest.mark.asyncio
    async def test_all_attempts_fail(self, chain_a, clock):
        """Should raise VerificationFailed carrying the last error."""
        last = RuntimeError("final failure")
        reader = FakeModuleReader([RuntimeError("first")] * 4 + [last])
        verifier = ModuleVerifier(reader, [chain_a], sleep=clock.sleep)

        with pytest.raises(VerificationFailed) as exc_info:
            await verifier.verify_module_enabled_with_retry(SAFE_A, 421614)

        assert exc_info.value.last_error is last
        assert exc_info.value.attempts == 5
        assert "after 5 attempts: final failure" in str(exc_info.value)
        assert len(reader.calls) == 5
        assert clock.sleeps == [2.0, 3.0, 4.5, 6.75]

    @pytest.mark.asyncio
    async def test_custom_retry_parameters(self, chain_a, clock):
        reader = FakeModuleReader([RuntimeError("x")])
        verifier = ModuleVerifier(reader, [chain_a], sleep=clock.sleep)

        with pytest.raises(VerificationFailed):
            await verifier.verify_module_enabled_with_retry(
                SAFE_A, 421614, max_retries=3, base_delay=1.0
            )

        assert len(reader.calls) == 3
        assert clock.sleeps == [1.0, 1.5]

    @pytest.mark.asyncio
    async def test_missing_module_address(self, unconfigured_chain, clock):
        """Should fail with a configuration error before any attempt."""
        reader = FakeModuleReader([True])
        verifier = ModuleVerifier(reader, [unconfigured_chain], sleep=clock.sleep)

        with pytest.raises(ConfigurationError) as exc_info:
            await verifier.verify_module_enabled_with_retry(SAFE_A, 42161)

        assert exc_info.value.chain_id == 42161
        assert reader.calls == []
        assert clock.sleeps == []

    @pytest.mark.asyncio
    async def test_unknown_chain(self, chain_a):
        verifier = ModuleVerifier(FakeModuleReader(), [chain_a])

        with pytest.raises(ConfigurationError):
            await verifier.verify_module_enabled_with_retry(SAFE_A, 1)


class TestRetryConfig:
    def test_calculate_delay(self):
        config = RetryConfig(base_delay=2.0)

        assert config.calculate_delay(0) == 2.0
        assert config.calculate_delay(1) == 3.0
        assert config.calculate_delay(2) == 4.5

    @pytest.mark.asyncio
    async def test_falsy_result_is_final(self, clock):
        """Should return a falsy value without retrying."""
        calls = []

        async def disabled():
            calls.append(1)
            return False

        assert await retry_async(disabled, sleep=clock.sleep) is False
        assert calls == [1]
        assert clock.sleeps == []

    @pytest.mark.asyncio
    async def test_exhausted_stats(self, clock):
        async def broken():
            raise ValueError("broken")

        with pytest.raises(RetryExhausted) as exc_info:
            await retry_async(broken, config=RetryConfig(max_attempts=2, base_delay=0.5), sleep=clock.sleep)

        assert exc_info.value.stats.attempts == 2
        assert clock.sleeps == [0.5]
        assert isinstance(exc_info.value.original_exception, ValueError)
