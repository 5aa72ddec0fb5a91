"""
Tests for USD valuation.
"""

from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from trade_sync.classifier import SwapClassifier
from trade_sync.models import Chain, RawTransfer
from trade_sync.valuation import CounterKind, USDValuation, classify_counter_symbol

from .factories import WALLET, swap_payloads


TX = "0x" + "7" * 64
TRADE_TIME = datetime(2025, 6, 1, 12, tzinfo=timezone.utc)


def _trade(paid_asset, paid_amount, received_asset, received_amount, chain=Chain.ETHEREUM):
    transfers = [
        RawTransfer.from_payload(p)
        for p in swap_payloads(TX, paid_asset, paid_amount, received_asset, received_amount)
    ]
    return SwapClassifier().classify(WALLET, TX, transfers, TRADE_TIME, chain)


class TestCounterKind:
    """Tests for classify_counter_symbol."""

    def test_kinds(self):
        assert classify_counter_symbol("usdc") == CounterKind.STABLECOIN
        assert classify_counter_symbol("WETH") == CounterKind.NATIVE
        assert classify_counter_symbol("PEPE") == CounterKind.OTHER
        assert classify_counter_symbol(None) == CounterKind.OTHER

    def test_chain_native_symbols(self, sync_config):
        valuation = USDValuation(config=sync_config)
        assert {"MATIC", "WMATIC", "ETH", "WETH"} <= valuation.native_symbols(Chain.POLYGON)


class TestUSDValuation:
    """Tests for USDValuation.enrich."""

    @pytest.mark.asyncio
    async def test_stablecoin_counter_prices_at_one(self, sync_config):
        lookup = AsyncMock(return_value=3000.0)
        valuation = USDValuation(lookup, sync_config)
        trade = _trade("WETH", "1", "USDC", "2500")

        await valuation.enrich(trade)

        assert trade.usd_price_per_token == trade.price
        assert trade.usd_value == Decimal("2500")
        assert trade.native_price_usd == Decimal("3000.0")
        lookup.assert_awaited_once_with(Chain.ETHEREUM, TRADE_TIME)

    @pytest.mark.asyncio
    async def test_native_counter_uses_historical_price(self, sync_config):
        valuation = USDValuation(AsyncMock(return_value=2000.0), sync_config)
        trade = _trade("ETH", "1", "LINK", "100")

        await valuation.enrich(trade)

        assert trade.price == Decimal("0.01")
        assert trade.usd_price_per_token == Decimal("20")
        assert trade.usd_value == Decimal("2000")

    @pytest.mark.asyncio
    async def test_other_counter_has_no_usd_fields(self, sync_config):
        valuation = USDValuation(AsyncMock(return_value=2000.0), sync_config)
        trade = _trade("LINK", "5", "PEPE", "5")

        await valuation.enrich(trade)

        assert trade.native_price_usd == Decimal("2000.0")
        assert trade.usd_price_per_token is None
        assert trade.usd_value is None

    @pytest.mark.asyncio
    async def test_lookup_failure_still_yields_trade(self, sync_config):
        valuation = USDValuation(AsyncMock(side_effect=RuntimeError("price api down")), sync_config)
        trade = _trade("ETH", "1", "LINK", "100")

        result = await valuation.enrich(trade)

        assert result is trade
        assert trade.price == Decimal("0.01")
        assert trade.native_price_usd is None
        assert trade.usd_value is None
        assert valuation.get_stats()["lookup_failures"] == 1

    @pytest.mark.asyncio
    async def test_missing_price_is_not_an_error(self, sync_config):
        valuation = USDValuation(AsyncMock(return_value=None), sync_config)
        trade = _trade("WETH", "1", "USDC", "2500")

        await valuation.enrich(trade)

        assert trade.native_price_usd is None
        assert trade.usd_value == Decimal("2500")
        assert valuation.get_stats() == {"lookups": 1, "lookup_failures": 1, "valued": 1, "unvalued": 0}

    @pytest.mark.asyncio
    async def test_without_lookup(self, sync_config):
        trade = _trade("WETH", "1", "USDC", "2500")

        await USDValuation(None, sync_config).enrich(trade)

        assert trade.usd_value == Decimal("2500")
