"""
Trade Sync Configuration - Chain endpoints, heuristics thresholds and storage.

All thresholds are configurable for tuning.
API keys are loaded from environment variables (a .env file is honoured).
"""

import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from dotenv import load_dotenv

from .exceptions import ConfigurationError
from .models import Chain


load_dotenv()


# First-sync floor for Ethereum mainnet (2025-05-03)
ETH_LAUNCH_BLOCK = 22403637
LAUNCH_TIMESTAMP = datetime(2025, 5, 3, tzinfo=timezone.utc)

DEFAULT_DATABASE_URL = "sqlite:///storage/trade_sync.db"


@dataclass
class ChainConfig:
    """Configuration for a specific chain."""
    chain: Chain
    enabled: bool = True

    # Provider endpoint (API key is appended as a path segment)
    alchemy_url: str = ""

    # Native currency
    native_symbol: str = "ETH"
    native_decimals: int = 18

    # First sync starts here instead of block 0 when set
    launch_block: Optional[int] = None

    # One page per directional query
    max_transfers_per_query: int = 1000

    def to_dict(self) -> dict[str, Any]:
        return {
            "chain": self.chain.value,
            "enabled": self.enabled,
            "alchemy_url": self.alchemy_url,
            "native_symbol": self.native_symbol,
            "native_decimals": self.native_decimals,
            "launch_block": self.launch_block,
            "max_transfers_per_query": self.max_transfers_per_query,
        }


@dataclass
class ClassifierConfig:
    """Swap classification thresholds."""

    # Transfers below this fraction of their side's largest are dust
    dust_threshold_ratio: float = 0.01

    # Amount ratio above which direction is decided by size alone
    direction_ratio_threshold: float = 10.0

    # Trades before this instant are skipped (None disables the floor)
    launch_timestamp: Optional[datetime] = LAUNCH_TIMESTAMP

    def to_dict(self) -> dict[str, Any]:
        return {
            "dust_threshold_ratio": self.dust_threshold_ratio,
            "direction_ratio_threshold": self.direction_ratio_threshold,
            "launch_timestamp": self.launch_timestamp.isoformat() if self.launch_timestamp else None,
        }


@dataclass
class SyncConfig:
    """Main configuration for the trade sync engine."""

    # Provider credentials
    alchemy_api_key: Optional[str] = field(
        default_factory=lambda: os.environ.get("ALCHEMY_API_KEY")
    )
    cryptocompare_api_key: Optional[str] = field(
        default_factory=lambda: os.environ.get("CRYPTOCOMPARE_API_KEY")
    )
    cryptocompare_url: str = "https://min-api.cryptocompare.com/data"

    # Chain configurations
    chains: dict[Chain, ChainConfig] = field(default_factory=dict)

    # Classification
    classifier: ClassifierConfig = field(default_factory=ClassifierConfig)

    # Cursor handling
    safety_margin_blocks: int = 5

    # Rate limiting between transaction groups
    inter_item_delay_seconds: float = 0.3

    # HTTP
    request_timeout_seconds: int = 15

    # Database
    database_url: str = field(
        default_factory=lambda: os.environ.get("TRADE_SYNC_DATABASE_URL", DEFAULT_DATABASE_URL)
    )

    def __post_init__(self) -> None:
        """Initialize default chain configs if not provided."""
        if not self.chains:
            self.chains = self._default_chain_configs()

    def _default_chain_configs(self) -> dict[Chain, ChainConfig]:
        return {
            Chain.ETHEREUM: ChainConfig(
                chain=Chain.ETHEREUM,
                alchemy_url="https://eth-mainnet.g.alchemy.com/v2",
                native_symbol="ETH",
                launch_block=ETH_LAUNCH_BLOCK,
            ),
            Chain.POLYGON: ChainConfig(
                chain=Chain.POLYGON,
                alchemy_url="https://polygon-mainnet.g.alchemy.com/v2",
                native_symbol="MATIC",
            ),
            Chain.ARBITRUM: ChainConfig(
                chain=Chain.ARBITRUM,
                alchemy_url="https://arb-mainnet.g.alchemy.com/v2",
                native_symbol="ETH",
            ),
            Chain.OPTIMISM: ChainConfig(
                chain=Chain.OPTIMISM,
                alchemy_url="https://opt-mainnet.g.alchemy.com/v2",
                native_symbol="ETH",
            ),
            Chain.BASE: ChainConfig(
                chain=Chain.BASE,
                alchemy_url="https://base-mainnet.g.alchemy.com/v2",
                native_symbol="ETH",
            ),
        }

    def get_chain_config(self, chain: Chain) -> ChainConfig:
        """
        Get configuration for a specific chain.

        Raises:
            ConfigurationError: If the chain is not configured or disabled
        """
        chain_config = self.chains.get(chain)
        if chain_config is None or not chain_config.enabled:
            raise ConfigurationError(f"Chain not configured: {chain.value}", chain)
        return chain_config

    def get_enabled_chains(self) -> list[Chain]:
        return [chain for chain, config in self.chains.items() if config.enabled]

    def to_dict(self) -> dict[str, Any]:
        return {
            "chains": {k.value: v.to_dict() for k, v in self.chains.items()},
            "classifier": self.classifier.to_dict(),
            "safety_margin_blocks": self.safety_margin_blocks,
            "inter_item_delay_seconds": self.inter_item_delay_seconds,
            "request_timeout_seconds": self.request_timeout_seconds,
            "database_url": self.database_url.split("@")[-1],
        }


# Default configuration instance
_default_config: Optional[SyncConfig] = None


def get_config() -> SyncConfig:
    """Get the default configuration."""
    global _default_config
    if _default_config is None:
        _default_config = SyncConfig()
    return _default_config


def set_config(config: SyncConfig) -> None:
    """Set the default configuration."""
    global _default_config
    _default_config = config
