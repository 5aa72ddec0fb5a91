"""
Storage Tests.

============================================================
PURPOSE
============================================================
Repository behaviour against an in-memory SQLite database:
- Idempotent trade upsert
- Trade queries
- Monotonic sync cursor and wallet reset
- Shared schema conventions

============================================================
"""

from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from sqlalchemy import UniqueConstraint, select
from sqlalchemy.exc import OperationalError

from trade_sync.classifier import SwapClassifier
from trade_sync.exceptions import CursorRegressionError, StorageError
from trade_sync.models import Chain, RawTransfer, TradeDirection
from trade_sync.storage import (
    Database,
    SyncStateRepository,
    TradeRecord,
    TradeRepository,
    TradeStore,
    WalletSyncState,
)

from .factories import USDC, WALLET, WETH, swap_payloads


TX = "0x" + "9" * 64
TRADE_TIME = datetime(2025, 6, 1, 12, tzinfo=timezone.utc)


def _trade(tx_hash=TX, paid="WETH", paid_amount="1", received="USDC", received_amount="2500", when=TRADE_TIME):
    transfers = [
        RawTransfer.from_payload(p)
        for p in swap_payloads(tx_hash, paid, paid_amount, received, received_amount)
    ]
    return SwapClassifier().classify(WALLET, tx_hash, transfers, when, Chain.ETHEREUM)


# ============================================================
# TRADES
# ============================================================

class TestTradeRepository:
    """Tests for TradeRepository via TradeStore."""

    def test_upsert_inserts_trade(self, store):
        trade = _trade()
        trade.usd_value = Decimal("2500")

        store.upsert_trade(trade)

        stored = store.get_trade(WALLET, Chain.ETHEREUM, TX)
        assert stored is not None
        assert stored.direction == TradeDirection.SELL
        assert stored.token_in.address == WETH
        assert stored.token_out.address == USDC
        assert stored.token_out.normalized_amount == Decimal("2500")
        assert stored.token_out.raw_amount == 2_500_000_000
        assert stored.price == Decimal("2500")
        assert stored.usd_value == Decimal("2500")
        assert stored.timestamp == TRADE_TIME
        assert stored.raw_payload["direction_rule"] == "received_stablecoin"

    def test_upsert_twice_keeps_one_row_with_latest_fields(self, store):
        first = _trade()
        store.upsert_trade(first)

        second = _trade()
        second.usd_value = Decimal("2499.5")
        second.platform = "uniswap"
        store.upsert_trade(second)

        assert store.count_trades(WALLET, Chain.ETHEREUM) == 1
        stored = store.get_trade(WALLET, Chain.ETHEREUM, TX)
        assert stored.usd_value == Decimal("2499.5")
        assert stored.platform == "uniswap"
        assert stored.direction == second.direction
        assert stored.token_in == second.token_in
        assert stored.token_out == second.token_out
        assert stored.price == second.price
        assert stored.tx_index == second.tx_index

    def test_list_trades_ordered_by_timestamp(self, store):
        later = _trade("0x" + "b" * 64, when=datetime(2025, 7, 1, tzinfo=timezone.utc))
        earlier = _trade("0x" + "a" * 64, when=datetime(2025, 6, 1, tzinfo=timezone.utc))
        store.upsert_trade(later)
        store.upsert_trade(earlier)

        trades = store.list_trades(WALLET, Chain.ETHEREUM)

        assert [t.tx_hash for t in trades] == [earlier.tx_hash, later.tx_hash]
        assert store.list_trades(WALLET, Chain.BASE) == []
        assert len(store.list_trades(WALLET, limit=1)) == 1

    def test_database_errors_are_wrapped(self):
        session = MagicMock()
        session.execute.side_effect = OperationalError("SELECT", {}, Exception("db gone"))

        with pytest.raises(StorageError):
            TradeRepository(session).upsert_trade(_trade())


# ============================================================
# SYNC CURSOR
# ============================================================

class TestSyncStateRepository:
    """Tests for the per-wallet sync cursor."""

    def test_unsynced_wallet_has_no_cursor(self, store):
        assert store.get_cursor(WALLET, Chain.ETHEREUM) is None

    def test_cursor_is_stored_as_hex(self, store):
        assert store.set_cursor(WALLET, Chain.ETHEREUM, "200") == "0xc8"
        assert store.get_cursor(WALLET.upper().replace("0X", "0x"), Chain.ETHEREUM) == "0xc8"

    def test_cursor_is_per_chain(self, store):
        store.set_cursor(WALLET, Chain.ETHEREUM, "0x100")

        assert store.get_cursor(WALLET, Chain.BASE) is None

    def test_cursor_refuses_to_move_backward(self, store):
        store.set_cursor(WALLET, Chain.ETHEREUM, "0x100")

        with pytest.raises(CursorRegressionError) as exc_info:
            store.set_cursor(WALLET, Chain.ETHEREUM, "0xff")

        assert exc_info.value.current_cursor == "0x100"
        assert store.get_cursor(WALLET, Chain.ETHEREUM) == "0x100"

    def test_reset_moves_cursor_back_to_sentinel(self, store):
        store.set_cursor(WALLET, Chain.ETHEREUM, "0x100")
        store.upsert_trade(_trade())
        store.upsert_trade(_trade("0x" + "a" * 64))

        deleted = store.reset_wallet(WALLET, Chain.ETHEREUM)

        assert deleted == 2
        assert store.get_cursor(WALLET, Chain.ETHEREUM) is None
        assert store.count_trades(WALLET, Chain.ETHEREUM) == 0
        assert store.set_cursor(WALLET, Chain.ETHEREUM, "0x50") == "0x50"

    def test_reset_can_keep_trades(self, store):
        store.set_cursor(WALLET, Chain.ETHEREUM, "0x100")
        store.upsert_trade(_trade())

        assert store.reset_wallet(WALLET, Chain.ETHEREUM, purge_trades=False) == 0
        assert store.get_cursor(WALLET, Chain.ETHEREUM) is None
        assert store.count_trades(WALLET, Chain.ETHEREUM) == 1

    def test_reset_only_touches_one_chain(self, store):
        store.set_cursor(WALLET, Chain.ETHEREUM, "0x100")
        store.set_cursor(WALLET, Chain.BASE, "0x200")

        store.reset_wallet(WALLET, Chain.ETHEREUM)

        assert store.get_cursor(WALLET, Chain.BASE) == "0x200"

    def test_reset_unsynced_wallet_is_noop(self):
        database = Database("sqlite://")
        database.create_all()
        with database.session_scope() as session:
            assert SyncStateRepository(session).reset_cursor(WALLET, Chain.ETHEREUM) is False
        database.dispose()

    def test_sentinel_cursor_reads_as_unset(self):
        database = Database("sqlite://")
        database.create_all()
        with database.session_scope() as session:
            SyncStateRepository(session).set_cursor(WALLET, Chain.ETHEREUM, "0x0")
        with database.session_scope() as session:
            assert SyncStateRepository(session).get_cursor(WALLET, Chain.ETHEREUM) is None
        database.dispose()

    def test_session_scope_rolls_back_on_error(self):
        store = TradeStore.from_url("sqlite://")
        with pytest.raises(RuntimeError):
            with store.database.session_scope() as session:
                SyncStateRepository(session).set_cursor(WALLET, Chain.ETHEREUM, "0x10")
                raise RuntimeError("abort")

        assert store.get_cursor(WALLET, Chain.ETHEREUM) is None
        store.close()


# ============================================================
# SCHEMA
# ============================================================

class TestSchema:
    """Tests for the shared declarative base."""

    def test_unique_keys_follow_naming_convention(self):
        trade_keys = {c.name for c in TradeRecord.__table__.constraints if isinstance(c, UniqueConstraint)}
        state_keys = {c.name for c in WalletSyncState.__table__.constraints if isinstance(c, UniqueConstraint)}

        assert trade_keys == {"uq_trades_wallet_address_chain_tx_hash"}
        assert state_keys == {"uq_wallet_sync_states_wallet_address_chain"}

    def test_audit_timestamps_are_set_in_utc(self):
        database = Database("sqlite://")
        database.create_all()
        with database.session_scope() as session:
            SyncStateRepository(session).set_cursor(WALLET, Chain.ETHEREUM, "0x10")
            state = session.execute(select(WalletSyncState)).scalar_one()
            assert state.created_at.tzinfo == timezone.utc
            assert state.updated_at >= state.created_at
        database.dispose()
