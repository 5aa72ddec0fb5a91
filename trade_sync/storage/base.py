"""
Declarative Base and Shared Columns.

============================================================
PURPOSE
============================================================
Every trade sync table is keyed by a wallet on a chain and carries
audit timestamps. The columns for both live here so the trade and
cursor tables stay consistent.

- Base: declarative base with a constraint naming convention and
  timezone-aware datetimes
- WalletKeyMixin: (wallet_address, chain) key columns
- TimestampMixin: created_at / updated_at, set in UTC on the Python
  side so SQLite rows carry them before the first refresh

============================================================
"""

from datetime import datetime, timezone

from sqlalchemy import DateTime, MetaData, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


NAMING_CONVENTION = {
    "ix": "idx_%(table_name)s_%(column_0_N_name)s",
    "uq": "uq_%(table_name)s_%(column_0_N_name)s",
    "pk": "pk_%(table_name)s",
}


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """Declarative base for trade sync ORM models."""

    metadata = MetaData(naming_convention=NAMING_CONVENTION)

    type_annotation_map = {
        datetime: DateTime(timezone=True),
    }


class WalletKeyMixin:
    """Lower-cased wallet address and chain value that scope every row."""

    wallet_address: Mapped[str] = mapped_column(String(64), nullable=False)
    chain: Mapped[str] = mapped_column(String(32), nullable=False)


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(nullable=False, default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=utc_now, onupdate=utc_now)
