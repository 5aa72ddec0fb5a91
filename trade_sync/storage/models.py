"""
Trade Sync ORM Models.

============================================================
TABLES
============================================================
- trades: one reconstructed swap per (wallet_address, chain, tx_hash)
- wallet_sync_states: one sync cursor per (wallet_address, chain)

Normalized amounts are stored as decimal strings so they round-trip
exactly; prices and USD figures are stored as floats.

============================================================
"""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, Float, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin, WalletKeyMixin


class TradeRecord(Base, WalletKeyMixin, TimestampMixin):
    """Persisted canonical trade."""

    __tablename__ = "trades"
    __table_args__ = (
        UniqueConstraint("wallet_address", "chain", "tx_hash"),
        Index("idx_trades_wallet_timestamp", "wallet_address", "timestamp"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    tx_hash: Mapped[str] = mapped_column(String(80), nullable=False)
    tx_index: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    platform: Mapped[str] = mapped_column(String(32), nullable=False, default="unknown")
    direction: Mapped[str] = mapped_column(String(8), nullable=False)

    # Leg the wallet gave up
    token_in_address: Mapped[str] = mapped_column(String(64), nullable=False)
    token_in_symbol: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    decimals_in: Mapped[int] = mapped_column(Integer, nullable=False)
    normalized_amount_in: Mapped[str] = mapped_column(String(100), nullable=False)

    # Leg the wallet received
    token_out_address: Mapped[str] = mapped_column(String(64), nullable=False)
    token_out_symbol: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    decimals_out: Mapped[int] = mapped_column(Integer, nullable=False)
    normalized_amount_out: Mapped[str] = mapped_column(String(100), nullable=False)

    price: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    native_price_usd: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    usd_price_per_token: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    usd_value: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    timestamp: Mapped[datetime] = mapped_column(nullable=False)
    raw: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)

    def __repr__(self) -> str:
        return (
            f"<TradeRecord {self.chain}:{self.wallet_address[:10]} "
            f"{self.tx_hash[:10]} {self.direction}>"
        )


class WalletSyncState(Base, WalletKeyMixin, TimestampMixin):
    """Durable sync cursor per wallet and chain."""

    __tablename__ = "wallet_sync_states"
    __table_args__ = (
        UniqueConstraint("wallet_address", "chain"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    last_synced_cursor: Mapped[Optional[str]] = mapped_column(String(66), nullable=True)
    last_synced_at: Mapped[Optional[datetime]] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return f"<WalletSyncState {self.chain}:{self.wallet_address[:10]} {self.last_synced_cursor}>"
