"""
CryptoCompare Price Provider - Historical native-asset USD prices.

Free API: https://min-api.cryptocompare.com/data/pricehistorical
Falls back to the current price for trades within the last 24 hours.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Optional

import aiohttp

from ..config import SyncConfig, get_config
from ..exceptions import APIError, RateLimitError
from ..models import Chain


logger = logging.getLogger(__name__)


# Chain -> symbol of the asset paying gas
CHAIN_TO_SYMBOL: dict[Chain, str] = {
    Chain.ETHEREUM: "ETH",
    Chain.ARBITRUM: "ETH",
    Chain.BASE: "ETH",
    Chain.OPTIMISM: "ETH",
    Chain.POLYGON: "MATIC",
    Chain.BSC: "BNB",
    Chain.AVALANCHE: "AVAX",
}

CURRENT_PRICE_FALLBACK_HOURS = 24


def chain_symbol(chain: Chain) -> str:
    """Price symbol for a chain's native asset (unknown chains default to ETH)."""
    symbol = CHAIN_TO_SYMBOL.get(chain)
    if symbol is None:
        logger.warning(f"Unknown chain {chain.value}, defaulting to ETH")
        return "ETH"
    return symbol


def _extract_price(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if value <= 0:
        return None
    return float(value)


class CryptoCompareClient:
    """Historical native-asset price lookup."""

    API_NAME = "cryptocompare"

    def __init__(
        self,
        config: Optional[SyncConfig] = None,
        api_key: Optional[str] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self.config = config or get_config()
        self.base_url = self.config.cryptocompare_url.rstrip("/")
        self.api_key = api_key or self.config.cryptocompare_api_key
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.config.request_timeout_seconds)
            self._session = aiohttp.ClientSession(timeout=timeout)
            self._owns_session = True
        return self._session

    async def _get(self, path: str, params: dict[str, Any]) -> Optional[dict[str, Any]]:
        session = await self._get_session()
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["authorization"] = f"Apikey {self.api_key}"

        try:
            async with session.get(f"{self.base_url}/{path}", params=params, headers=headers) as response:
                if response.status == 429:
                    raise RateLimitError(
                        "CryptoCompare rate limit exceeded",
                        api_name=self.API_NAME,
                        retry_after_seconds=60,
                    )
                if response.status >= 400:
                    logger.error(
                        f"CryptoCompare API error for {params.get('fsym')}: "
                        f"{response.status} {response.reason}"
                    )
                    return None
                data = await response.json()
        except aiohttp.ClientError as e:
            raise APIError(f"Network error: {e}", api_name=self.API_NAME) from e

        return data if isinstance(data, dict) else None

    async def get_current_price(self, symbol: str) -> Optional[float]:
        data = await self._get("price", {"fsym": symbol, "tsyms": "USD"})
        if not data:
            return None
        return _extract_price(data.get("USD"))

    async def get_historical_native_price(
        self,
        chain: Chain,
        timestamp: datetime,
    ) -> Optional[float]:
        """
        USD price of the chain's native asset at the given instant.

        Returns None when neither the historical nor the fallback current
        price is available. Transport failures raise APIError.
        """
        symbol = chain_symbol(chain)
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=timezone.utc)
        ts = int(timestamp.timestamp())
        now = int(datetime.now(timezone.utc).timestamp())

        if ts > now:
            logger.warning(f"Date {timestamp.isoformat()} is in the future, using current price")

        logger.debug(f"Fetching price for {symbol} at {ts}...")
        data = await self._get("pricehistorical", {"fsym": symbol, "tsyms": "USD", "ts": ts})
        if data and isinstance(data.get(symbol), dict):
            price = _extract_price(data[symbol].get("USD"))
            if price is not None:
                logger.debug(f"Historical price for {chain.value} ({symbol}): ${price} at {timestamp.isoformat()}")
                return price

        hours_ago = (now - ts) / 3600
        if hours_ago <= CURRENT_PRICE_FALLBACK_HOURS:
            logger.info(f"Using current price fallback for {chain.value} (trade was {hours_ago:.2f}h ago)")
            price = await self.get_current_price(symbol)
            if price is not None:
                return price
            logger.warning(f"Current price fallback also failed for {chain.value} ({symbol})")
        else:
            logger.warning(
                f"Historical price unavailable for {chain.value} ({symbol}) at "
                f"{timestamp.isoformat()}, trade is {hours_ago:.2f}h ago"
            )
        return None

    async def close(self) -> None:
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
