"""
Tests for block range resolution and cursor handling.
"""

from unittest.mock import AsyncMock

import pytest

from trade_sync.blocks import (
    BlockRange,
    BlockRangeResolver,
    block_to_hex,
    block_to_int,
    is_unset_cursor,
)
from trade_sync.config import ETH_LAUNCH_BLOCK
from trade_sync.exceptions import APIError
from trade_sync.models import Chain
from trade_sync.tracker import CursorTracker, next_cursor


WALLET = "0x" + "e" * 40


class TestBlockNumbers:
    """Tests for block number helpers."""

    def test_block_to_int(self):
        assert block_to_int("0x64") == 100
        assert block_to_int("100") == 100
        assert block_to_int(100) == 100
        assert block_to_int(None) == 0

    def test_block_to_hex(self):
        assert block_to_hex(255) == "0xff"
        assert block_to_hex("0x00FF") == "0xff"
        assert block_to_hex("16") == "0x10"

    @pytest.mark.parametrize("cursor", [None, "", "0", "0x0", " 0x0 "])
    def test_sentinels_are_unset(self, cursor):
        assert is_unset_cursor(cursor)

    def test_real_cursor_is_set(self):
        assert not is_unset_cursor("0x1")
        assert not is_unset_cursor("0x155d4f5")


class TestBlockRangeResolver:
    """Tests for BlockRangeResolver."""

    def test_cursor_backs_off_safety_margin(self, sync_config):
        resolver = BlockRangeResolver(AsyncMock(), sync_config)
        assert resolver.start_block("0x64", Chain.ETHEREUM) == 95

    def test_margin_never_goes_negative(self, sync_config):
        resolver = BlockRangeResolver(AsyncMock(), sync_config)
        assert resolver.start_block("0x3", Chain.ETHEREUM) == 0

    def test_first_sync_uses_launch_floor(self, sync_config):
        resolver = BlockRangeResolver(AsyncMock(), sync_config)
        assert resolver.start_block(None, Chain.ETHEREUM) == ETH_LAUNCH_BLOCK
        assert resolver.start_block("0x0", Chain.ETHEREUM) == ETH_LAUNCH_BLOCK

    def test_first_sync_without_floor_starts_at_zero(self, sync_config):
        resolver = BlockRangeResolver(AsyncMock(), sync_config)
        assert resolver.start_block("0", Chain.POLYGON) == 0

    @pytest.mark.asyncio
    async def test_resolve_queries_tip_every_call(self, sync_config):
        tip = AsyncMock(side_effect=[200, 210])
        resolver = BlockRangeResolver(tip, sync_config)

        first = await resolver.resolve("0x64", Chain.POLYGON)
        second = await resolver.resolve("0x64", Chain.POLYGON)

        assert first == BlockRange(95, 200)
        assert second == BlockRange(95, 210)
        assert tip.await_count == 2

    @pytest.mark.asyncio
    async def test_resolve_propagates_tip_errors(self, sync_config):
        tip = AsyncMock(side_effect=APIError("boom", api_name="alchemy"))
        resolver = BlockRangeResolver(tip, sync_config)

        with pytest.raises(APIError):
            await resolver.resolve(None, Chain.ETHEREUM)

    def test_empty_range(self):
        assert BlockRange(100, 100).is_empty
        assert BlockRange(101, 100).is_empty
        assert not BlockRange(99, 100).is_empty
        assert BlockRange(16, 255).from_hex == "0x10"
        assert BlockRange(16, 255).to_hex == "0xff"


class TestCursorTracker:
    """Tests for forward-only cursor advancement."""

    def test_next_cursor_moves_to_to_block(self):
        assert next_cursor("0x64", 200) == "0xc8"
        assert next_cursor(None, 200) == "0xc8"
        assert next_cursor("0x0", 0) == "0x0"

    def test_next_cursor_never_moves_backward(self):
        assert next_cursor("0xc8", 150) == "0xc8"

    def test_advance_persists_cursor(self, store):
        tracker = CursorTracker(store)

        cursor = tracker.advance(WALLET, Chain.ETHEREUM, 200)

        assert cursor == "0xc8"
        assert store.get_cursor(WALLET, Chain.ETHEREUM) == "0xc8"

    def test_advance_keeps_higher_stored_cursor(self, store):
        tracker = CursorTracker(store)
        tracker.advance(WALLET, Chain.ETHEREUM, 300)

        cursor = tracker.advance(WALLET, Chain.ETHEREUM, 250)

        assert cursor == "0x12c"
        assert tracker.current(WALLET, Chain.ETHEREUM) == "0x12c"

