"""
Configuration management for sardis-onboarding.

Provides centralized configuration for:
- Chain definitions (chain ID, Safe module and factory addresses)
- Testnet-only chain selection
- Timeout and polling values for chain switching and confirmation
- Retry parameters for module verification
- Relay API endpoint
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict
from web3 import Web3

logger = logging.getLogger(__name__)


# Supported chain IDs
ARBITRUM_SEPOLIA_CHAIN_ID = 421614
ARBITRUM_MAINNET_CHAIN_ID = 42161


class OnboardingSettings(BaseSettings):
    """Onboarding settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_prefix="SARDIS_ONBOARDING_",
        env_file=".env",
        extra="ignore",
    )

    # Only Arbitrum Sepolia is selectable unless explicitly disabled
    use_testnet_only: bool = True

    # Safe module / factory addresses (populated after deployment)
    testnet_module_address: str = ""
    testnet_wallet_factory_address: str = ""
    mainnet_module_address: str = ""
    mainnet_wallet_factory_address: str = ""

    # RPC endpoints
    testnet_rpc_url: str = "https://sepolia-rollup.arbitrum.io/rpc"
    mainnet_rpc_url: str = "https://arb1.arbitrum.io/rpc"

    # Relay API
    relay_api_base_url: str = "http://localhost:8000/api/v2"
    http_timeout_seconds: float = 30.0

    # Chain switching
    chain_switch_timeout_seconds: float = 5.0
    chain_poll_interval_seconds: float = 0.1

    # Transaction confirmation
    tx_confirmation_timeout_seconds: float = 60.0
    tx_poll_interval_seconds: float = 2.0

    # Module verification
    verify_max_retries: int = 5
    verify_base_delay_seconds: float = 2.0


@dataclass(frozen=True)
class ChainConfig:
    """Static configuration for one onboarding chain."""
    key: str  # Stable identifier, e.g. "testnet" / "mainnet"
    chain_id: int
    name: str
    module_address: str
    wallet_factory_address: str
    explorer_url: str = ""
    is_testnet: bool = False
    rpc_url: str = ""


def build_chain_definitions(settings: Optional[OnboardingSettings] = None) -> Dict[int, ChainConfig]:
    """Build chain definitions keyed by chain ID."""
    settings = settings or get_settings()
    return {
        ARBITRUM_SEPOLIA_CHAIN_ID: ChainConfig(
            key="testnet",
            chain_id=ARBITRUM_SEPOLIA_CHAIN_ID,
            name="Arbitrum Sepolia",
            module_address=settings.testnet_module_address,
            wallet_factory_address=settings.testnet_wallet_factory_address,
            explorer_url="https://sepolia.arbiscan.io",
            is_testnet=True,
            rpc_url=settings.testnet_rpc_url,
        ),
        ARBITRUM_MAINNET_CHAIN_ID: ChainConfig(
            key="mainnet",
            chain_id=ARBITRUM_MAINNET_CHAIN_ID,
            name="Arbitrum Mainnet",
            module_address=settings.mainnet_module_address,
            wallet_factory_address=settings.mainnet_wallet_factory_address,
            explorer_url="https://arbiscan.io",
            is_testnet=False,
            rpc_url=settings.mainnet_rpc_url,
        ),
    }


def get_selectable_chains(settings: Optional[OnboardingSettings] = None) -> List[ChainConfig]:
    """Chains offered for onboarding, testnet first."""
    settings = settings or get_settings()
    definitions = build_chain_definitions(settings)
    chains = [definitions[ARBITRUM_SEPOLIA_CHAIN_ID]]
    if not settings.use_testnet_only:
        chains.append(definitions[ARBITRUM_MAINNET_CHAIN_ID])
    return chains


def get_chain_by_id(chains: List[ChainConfig], chain_id: int) -> Optional[ChainConfig]:
    """Find a chain configuration by chain ID."""
    for chain in chains:
        if chain.chain_id == chain_id:
            return chain
    return None


def get_module_address(chains: List[ChainConfig], chain_id: int) -> str:
    """Get the module address for a chain, or "" if unknown."""
    chain = get_chain_by_id(chains, chain_id)
    if chain is None:
        logger.warning(f"Chain ID {chain_id} not supported")
        return ""
    return chain.module_address or ""


def validate_chain_configs(chains: List[ChainConfig]) -> List[str]:
    """
    Check chain configurations for deployment defects.

    Returns a list of human-readable issues. Each issue is also logged as a
    warning since it indicates a config problem, not a runtime condition.
    """
    issues: List[str] = []
    seen_keys: set = set()

    for chain in chains:
        if chain.key in seen_keys:
            issues.append(f"Duplicate chain key '{chain.key}'")
        seen_keys.add(chain.key)

        for field_name in ("module_address", "wallet_factory_address"):
            value = getattr(chain, field_name)
            if not value:
                issues.append(
                    f"{field_name} not configured for chain {chain.chain_id} ({chain.name})"
                )
            elif not Web3.is_address(value):
                issues.append(
                    f"{field_name} for chain {chain.chain_id} ({chain.name}) "
                    f"is not a valid address: {value}"
                )

    for issue in issues:
        logger.warning(f"CONFIG: {issue}")

    return issues


# Global settings instance
_global_settings: Optional[OnboardingSettings] = None


def get_settings() -> OnboardingSettings:
    """Get the global settings instance."""
    global _global_settings
    if _global_settings is None:
        _global_settings = OnboardingSettings()
    return _global_settings


def set_settings(settings: OnboardingSettings) -> None:
    """Set the global settings instance."""
    global _global_settings
    _global_settings = settings


def reset_settings() -> None:
    """Drop the cached settings so the next access re-reads the environment."""
    global _global_settings
    _global_settings = None
