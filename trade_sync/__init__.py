"""
Trade Sync - Wallet swap reconstruction and incremental sync.

Reads a wallet's raw on-chain asset transfers, reconstructs the swaps
they add up to, values them in USD where possible and stores them. A
per-wallet cursor makes every run pick up only new blocks.

Usage:
    from trade_sync import WalletSyncEngine, TradeStore, AlchemyClient, Chain

    alchemy = AlchemyClient(Chain.ETHEREUM)
    store = TradeStore.from_url("sqlite:///storage/trade_sync.db")
    engine = WalletSyncEngine({Chain.ETHEREUM: alchemy}, store)

    result = await engine.run_cycle("0x...", Chain.ETHEREUM)
    print(result.summary())

Trade Output:
- direction: buy / sell of the display token
- token_in / token_out: leg the wallet gave up / received
- price: counter amount per display token
- usd_price_per_token, usd_value: set when the counter leg is a
  stablecoin or the native asset
"""

from .classifier import DIRECTION_RULES, DirectionRule, SwapClassifier
from .config import ChainConfig, ClassifierConfig, SyncConfig, get_config, set_config
from .engine import BatchSyncResult, WalletSyncEngine
from .exceptions import (
    APIError,
    ClassificationError,
    ConfigurationError,
    CursorRegressionError,
    ParseError,
    PriceUnavailableError,
    RateLimitError,
    StorageError,
    TradeSyncError,
)
from .models import (
    CanonicalTrade,
    Chain,
    RawTransfer,
    SyncResult,
    SyncStage,
    TokenLeg,
    TradeDirection,
    normalize_chain,
)
from .progress import NullProgressReporter, ProgressReporter, SyncStatusTracker
from .providers import AlchemyClient, CryptoCompareClient
from .storage import TradeStore
from .tracker import CursorTracker
from .valuation import USDValuation

__all__ = [
    # Config
    "ChainConfig",
    "ClassifierConfig",
    "SyncConfig",
    "get_config",
    "set_config",
    # Models
    "CanonicalTrade",
    "Chain",
    "RawTransfer",
    "SyncResult",
    "SyncStage",
    "TokenLeg",
    "TradeDirection",
    "normalize_chain",
    # Engine
    "BatchSyncResult",
    "WalletSyncEngine",
    "SwapClassifier",
    "DirectionRule",
    "DIRECTION_RULES",
    "USDValuation",
    "CursorTracker",
    # Progress
    "ProgressReporter",
    "NullProgressReporter",
    "SyncStatusTracker",
    # Providers / storage
    "AlchemyClient",
    "CryptoCompareClient",
    "TradeStore",
    # Exceptions
    "TradeSyncError",
    "APIError",
    "RateLimitError",
    "ParseError",
    "ClassificationError",
    "PriceUnavailableError",
    "StorageError",
    "CursorRegressionError",
    "ConfigurationError",
]
