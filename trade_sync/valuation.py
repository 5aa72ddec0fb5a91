"""
USD Valuation - Best-effort USD enrichment of reconstructed trades.

The counter leg decides the USD multiplier:
- stablecoin counter -> 1.0
- native counter (ETH/WETH or the chain's own native symbol) -> historical
  native USD price at the trade timestamp
- anything else -> no USD fields

Price lookup failures are logged and never block reconstruction.
"""

import logging
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Awaitable, Callable, Optional

from .config import SyncConfig, get_config
from .exceptions import PriceUnavailableError
from .models import NATIVE_SYMBOLS, STABLECOIN_SYMBOLS, CanonicalTrade, Chain


logger = logging.getLogger(__name__)


# (chain, timestamp) -> USD price of the chain's native asset
PriceLookup = Callable[[Chain, datetime], Awaitable[Optional[float]]]


class CounterKind(Enum):
    """How a counter token can be converted to USD."""
    STABLECOIN = "stablecoin"
    NATIVE = "native"
    OTHER = "other"


def classify_counter_symbol(
    symbol: Optional[str],
    native_symbols: frozenset[str] = NATIVE_SYMBOLS,
) -> CounterKind:
    upper = (symbol or "").upper()
    if upper in STABLECOIN_SYMBOLS:
        return CounterKind.STABLECOIN
    if upper in native_symbols:
        return CounterKind.NATIVE
    return CounterKind.OTHER


class USDValuation:
    """Enriches trades with native price, USD price per token and USD value."""

    def __init__(
        self,
        price_lookup: Optional[PriceLookup] = None,
        config: Optional[SyncConfig] = None,
    ) -> None:
        self.config = config or get_config()
        self._price_lookup = price_lookup
        self._stats = {
            "lookups": 0,
            "lookup_failures": 0,
            "valued": 0,
            "unvalued": 0,
        }

    def native_symbols(self, chain: Chain) -> frozenset[str]:
        """ETH/WETH plus the chain's own native symbol and its wrapped form."""
        chain_config = self.config.chains.get(chain)
        if chain_config is None:
            return NATIVE_SYMBOLS
        native = chain_config.native_symbol.upper()
        return NATIVE_SYMBOLS | {native, f"W{native}"}

    async def fetch_native_price(self, chain: Chain, timestamp: datetime) -> Optional[Decimal]:
        """Historical native USD price, or None when unavailable."""
        if self._price_lookup is None:
            return None

        self._stats["lookups"] += 1
        try:
            price = await self._price_lookup(chain, timestamp)
            if price is None or price <= 0:
                raise PriceUnavailableError(
                    f"No native price for {chain.value} at {timestamp.isoformat()}", chain
                )
        except PriceUnavailableError as e:
            self._stats["lookup_failures"] += 1
            logger.warning(e.message)
            return None
        except Exception as e:
            self._stats["lookup_failures"] += 1
            logger.error(
                f"Failed to fetch native price (chain: {chain.value}, "
                f"timestamp: {timestamp.isoformat()}): {e}"
            )
            return None
        return Decimal(str(price))

    async def enrich(self, trade: CanonicalTrade) -> CanonicalTrade:
        """Populate USD fields in place and return the trade."""
        native_price = await self.fetch_native_price(trade.chain, trade.timestamp)
        trade.native_price_usd = native_price

        kind = classify_counter_symbol(trade.counter_leg.symbol, self.native_symbols(trade.chain))
        multiplier: Optional[Decimal] = None
        if kind == CounterKind.STABLECOIN:
            multiplier = Decimal(1)
        elif kind == CounterKind.NATIVE and native_price is not None:
            multiplier = native_price

        trade.usd_price_per_token = None
        trade.usd_value = None
        if trade.price is not None and multiplier is not None:
            trade.usd_price_per_token = trade.price * multiplier
            if trade.usd_price_per_token > 0:
                trade.usd_value = trade.display_amount * trade.usd_price_per_token

        if trade.usd_value is not None:
            self._stats["valued"] += 1
        else:
            self._stats["unvalued"] += 1
        return trade

    def get_stats(self) -> dict[str, int]:
        return dict(self._stats)
