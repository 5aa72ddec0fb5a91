"""
Trade Sync Repositories.

============================================================
PURPOSE
============================================================
Data access for canonical trades and per-wallet sync cursors.

- TradeRepository: idempotent upsert keyed on
  (wallet_address, chain, tx_hash)
- SyncStateRepository: monotonic last-synced cursor per
  (wallet_address, chain); reset_cursor is the only way back

Session is injected via constructor. Database errors are wrapped in
StorageError.

============================================================
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..amounts import to_raw_amount
from ..blocks import RESET_CURSOR, block_to_hex, block_to_int, is_unset_cursor
from ..exceptions import CursorRegressionError, StorageError
from ..models import CanonicalTrade, Chain, TokenLeg, TradeDirection, normalize_chain
from .models import TradeRecord, WalletSyncState


def _to_float(value: Optional[Decimal]) -> Optional[float]:
    return float(value) if value is not None else None


def _to_decimal(value: Optional[float]) -> Optional[Decimal]:
    return Decimal(str(value)) if value is not None else None


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _trade_columns(trade: CanonicalTrade) -> dict[str, Any]:
    """Mutable column values derived from a canonical trade."""
    return {
        "tx_index": trade.tx_index,
        "platform": trade.platform,
        "direction": trade.direction.value,
        "token_in_address": trade.token_in.address,
        "token_in_symbol": trade.token_in.symbol,
        "decimals_in": trade.token_in.decimals,
        "normalized_amount_in": str(trade.token_in.normalized_amount),
        "token_out_address": trade.token_out.address,
        "token_out_symbol": trade.token_out.symbol,
        "decimals_out": trade.token_out.decimals,
        "normalized_amount_out": str(trade.token_out.normalized_amount),
        "price": _to_float(trade.price),
        "native_price_usd": _to_float(trade.native_price_usd),
        "usd_price_per_token": _to_float(trade.usd_price_per_token),
        "usd_value": _to_float(trade.usd_value),
        "timestamp": trade.timestamp,
        "raw": trade.raw_payload or None,
    }


def _leg(address: str, symbol: Optional[str], decimals: int, amount: str) -> TokenLeg:
    normalized = Decimal(amount)
    return TokenLeg(
        address=address,
        symbol=symbol,
        decimals=decimals,
        raw_amount=to_raw_amount(normalized, decimals),
        normalized_amount=normalized,
    )


def record_to_trade(record: TradeRecord) -> CanonicalTrade:
    """Rebuild a CanonicalTrade from its stored row."""
    return CanonicalTrade(
        wallet_address=record.wallet_address,
        chain=normalize_chain(record.chain),
        tx_hash=record.tx_hash,
        direction=TradeDirection(record.direction),
        token_in=_leg(
            record.token_in_address, record.token_in_symbol,
            record.decimals_in, record.normalized_amount_in,
        ),
        token_out=_leg(
            record.token_out_address, record.token_out_symbol,
            record.decimals_out, record.normalized_amount_out,
        ),
        timestamp=_as_utc(record.timestamp),
        tx_index=record.tx_index,
        price=_to_decimal(record.price),
        native_price_usd=_to_decimal(record.native_price_usd),
        usd_price_per_token=_to_decimal(record.usd_price_per_token),
        usd_value=_to_decimal(record.usd_value),
        platform=record.platform,
        raw_payload=record.raw or {},
    )


class _Repository:
    """Shared session handling and error wrapping."""

    def __init__(self, session: Session, repository_name: str) -> None:
        self._session = session
        self._logger = logging.getLogger(f"repository.{repository_name}")

    @property
    def session(self) -> Session:
        return self._session

    def _handle_db_error(self, error: Exception, operation: str) -> None:
        self._logger.error(f"Database error during {operation}: {error}")
        raise StorageError(
            f"Database error during {operation}: {error}",
            details={"operation": operation, "error_type": type(error).__name__},
        ) from error


class TradeRepository(_Repository):
    """Canonical trade persistence."""

    def __init__(self, session: Session) -> None:
        super().__init__(session, "TradeRepository")

    def _find(self, wallet_address: str, chain: Chain, tx_hash: str) -> Optional[TradeRecord]:
        stmt = select(TradeRecord).where(
            TradeRecord.wallet_address == wallet_address.lower(),
            TradeRecord.chain == chain.value,
            TradeRecord.tx_hash == tx_hash.lower(),
        )
        return self._session.execute(stmt).scalar_one_or_none()

    def upsert_trade(self, trade: CanonicalTrade) -> TradeRecord:
        """
        Insert the trade or update the existing row with the same
        (wallet_address, chain, tx_hash).

        Re-running a range is therefore idempotent: the stored row
        always reflects the latest reconstruction.
        """
        try:
            record = self._find(trade.wallet_address, trade.chain, trade.tx_hash)
            columns = _trade_columns(trade)
            if record is None:
                record = TradeRecord(
                    wallet_address=trade.wallet_address,
                    chain=trade.chain.value,
                    tx_hash=trade.tx_hash.lower(),
                    **columns,
                )
                self._session.add(record)
                self._logger.debug(f"Inserted trade {trade.tx_hash}")
            else:
                for name, value in columns.items():
                    setattr(record, name, value)
                self._logger.debug(f"Updated trade {trade.tx_hash}")
            self._session.flush()
            return record
        except SQLAlchemyError as e:
            self._handle_db_error(e, "upsert_trade")
            raise

    def get_trade(self, wallet_address: str, chain: Chain, tx_hash: str) -> Optional[CanonicalTrade]:
        try:
            record = self._find(wallet_address, chain, tx_hash)
        except SQLAlchemyError as e:
            self._handle_db_error(e, "get_trade")
            raise
        return record_to_trade(record) if record is not None else None

    def list_trades(
        self,
        wallet_address: str,
        chain: Optional[Chain] = None,
        limit: Optional[int] = None,
    ) -> list[CanonicalTrade]:
        """Trades for a wallet ordered by timestamp ascending."""
        stmt = select(TradeRecord).where(TradeRecord.wallet_address == wallet_address.lower())
        if chain is not None:
            stmt = stmt.where(TradeRecord.chain == chain.value)
        stmt = stmt.order_by(TradeRecord.timestamp.asc(), TradeRecord.id.asc())
        if limit is not None:
            stmt = stmt.limit(limit)
        try:
            records = self._session.execute(stmt).scalars().all()
        except SQLAlchemyError as e:
            self._handle_db_error(e, "list_trades")
            raise
        return [record_to_trade(r) for r in records]

    def count_trades(self, wallet_address: Optional[str] = None, chain: Optional[Chain] = None) -> int:
        stmt = select(func.count()).select_from(TradeRecord)
        if wallet_address is not None:
            stmt = stmt.where(TradeRecord.wallet_address == wallet_address.lower())
        if chain is not None:
            stmt = stmt.where(TradeRecord.chain == chain.value)
        try:
            return int(self._session.execute(stmt).scalar_one())
        except SQLAlchemyError as e:
            self._handle_db_error(e, "count_trades")
            raise

    def delete_trades(self, wallet_address: str, chain: Chain) -> int:
        """Delete every stored trade of a wallet on one chain; returns the row count."""
        stmt = delete(TradeRecord).where(
            TradeRecord.wallet_address == wallet_address.lower(),
            TradeRecord.chain == chain.value,
        )
        try:
            deleted = self._session.execute(stmt).rowcount or 0
        except SQLAlchemyError as e:
            self._handle_db_error(e, "delete_trades")
            raise
        self._logger.info(f"Deleted {deleted} trades for {wallet_address} on {chain.value}")
        return deleted


class SyncStateRepository(_Repository):
    """Per-wallet sync cursor persistence."""

    def __init__(self, session: Session) -> None:
        super().__init__(session, "SyncStateRepository")

    def _find(self, wallet_address: str, chain: Chain) -> Optional[WalletSyncState]:
        stmt = select(WalletSyncState).where(
            WalletSyncState.wallet_address == wallet_address.lower(),
            WalletSyncState.chain == chain.value,
        )
        return self._session.execute(stmt).scalar_one_or_none()

    def get_cursor(self, wallet_address: str, chain: Chain) -> Optional[str]:
        """Stored cursor, or None when the wallet has never been synced."""
        try:
            state = self._find(wallet_address, chain)
        except SQLAlchemyError as e:
            self._handle_db_error(e, "get_cursor")
            raise
        if state is None or is_unset_cursor(state.last_synced_cursor):
            return None
        return state.last_synced_cursor

    def set_cursor(self, wallet_address: str, chain: Chain, cursor: str) -> str:
        """
        Store a new cursor.

        Raises:
            CursorRegressionError: if the new cursor is lower than the
                stored one
        """
        new_cursor = block_to_hex(cursor)
        try:
            state = self._find(wallet_address, chain)
            if state is None:
                state = WalletSyncState(wallet_address=wallet_address.lower(), chain=chain.value)
                self._session.add(state)
            elif not is_unset_cursor(state.last_synced_cursor):
                if block_to_int(new_cursor) < block_to_int(state.last_synced_cursor):
                    raise CursorRegressionError(
                        wallet_address, state.last_synced_cursor, new_cursor, chain
                    )
            state.last_synced_cursor = new_cursor
            state.last_synced_at = datetime.now(timezone.utc)
            self._session.flush()
        except SQLAlchemyError as e:
            self._handle_db_error(e, "set_cursor")
            raise
        self._logger.debug(f"Cursor for {wallet_address} on {chain.value} -> {new_cursor}")
        return new_cursor

    def reset_cursor(self, wallet_address: str, chain: Chain) -> bool:
        """
        Put the cursor back to the unset sentinel so the next cycle
        rescans from the chain's launch floor.

        This is the only path allowed to move a cursor backward.

        Returns:
            True if a stored cursor was reset, False if none existed
        """
        try:
            state = self._find(wallet_address, chain)
            if state is None:
                return False
            state.last_synced_cursor = RESET_CURSOR
            state.last_synced_at = datetime.now(timezone.utc)
            self._session.flush()
        except SQLAlchemyError as e:
            self._handle_db_error(e, "reset_cursor")
            raise
        self._logger.info(f"Cursor for {wallet_address} on {chain.value} reset")
        return True
