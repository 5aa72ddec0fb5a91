"""
Trade Sync Storage.

SQLAlchemy persistence for canonical trades and per-wallet sync cursors.
"""

from .base import Base, TimestampMixin, WalletKeyMixin
from .database import Database, create_database_engine
from .models import TradeRecord, WalletSyncState
from .repositories import SyncStateRepository, TradeRepository, record_to_trade
from .store import TradeStore

__all__ = [
    "Base",
    "TimestampMixin",
    "WalletKeyMixin",
    "Database",
    "create_database_engine",
    "TradeRecord",
    "WalletSyncState",
    "TradeRepository",
    "SyncStateRepository",
    "record_to_trade",
    "TradeStore",
]
