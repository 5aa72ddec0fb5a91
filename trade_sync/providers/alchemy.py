"""
Alchemy Transfer Provider - JSON-RPC client for asset transfers and chain tip.

Uses alchemy_getAssetTransfers for directional transfer history and
eth_blockNumber for the chain tip. One page per call; deeper pagination
is left to subsequent sync cycles.
"""

import logging
from typing import Any, Optional

import aiohttp

from ..blocks import block_to_hex, block_to_int
from ..config import ChainConfig, SyncConfig, get_config
from ..exceptions import APIError, ConfigurationError, RateLimitError
from ..models import Chain


logger = logging.getLogger(__name__)


TRANSFER_CATEGORIES = ["external", "internal", "erc20", "erc721", "erc1155"]

DIRECTIONS = ("from", "to")


class AlchemyClient:
    """
    Alchemy JSON-RPC client for a single chain.

    Any transport or API error raises; the caller treats it as fatal
    for the cycle.
    """

    API_NAME = "alchemy"

    def __init__(
        self,
        chain: Chain = Chain.ETHEREUM,
        config: Optional[SyncConfig] = None,
        api_key: Optional[str] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self.config = config or get_config()
        self.chain = chain
        self.chain_config: ChainConfig = self.config.get_chain_config(chain)

        self.api_key = api_key or self.config.alchemy_api_key
        if not self.api_key:
            raise ConfigurationError("ALCHEMY_API_KEY environment variable is not set", chain)

        self._session = session
        self._owns_session = session is None
        self._request_id = 0

    @property
    def url(self) -> str:
        return f"{self.chain_config.alchemy_url}/{self.api_key}"

    async def _get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session."""
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self.config.request_timeout_seconds)
            self._session = aiohttp.ClientSession(timeout=timeout)
            self._owns_session = True
        return self._session

    async def _rpc(self, method: str, params: list[Any]) -> Any:
        """Send a JSON-RPC request and return its result."""
        session = await self._get_session()
        self._request_id += 1
        body = {
            "id": self._request_id,
            "jsonrpc": "2.0",
            "method": method,
            "params": params,
        }

        try:
            async with session.post(
                self.url,
                json=body,
                headers={"Content-Type": "application/json"},
            ) as response:
                if response.status == 429:
                    raise RateLimitError(
                        "Alchemy rate limit exceeded",
                        chain=self.chain,
                        api_name=self.API_NAME,
                        retry_after_seconds=60,
                    )
                if response.status >= 400:
                    raise APIError(
                        f"Alchemy API error: {response.status} {response.reason}",
                        chain=self.chain,
                        api_name=self.API_NAME,
                        status_code=response.status,
                    )

                data = await response.json()

        except aiohttp.ClientError as e:
            raise APIError(
                f"Network error: {e}",
                chain=self.chain,
                api_name=self.API_NAME,
            ) from e

        if not isinstance(data, dict):
            raise APIError(
                "Alchemy API returned a non-object response",
                chain=self.chain,
                api_name=self.API_NAME,
            )

        error = data.get("error")
        if error:
            message = error.get("message") if isinstance(error, dict) else str(error)
            raise APIError(
                f"Alchemy API error: {message}",
                chain=self.chain,
                api_name=self.API_NAME,
                details={"method": method, "error": error},
            )

        return data.get("result")

    async def get_block_number(self) -> int:
        """Current chain tip."""
        result = await self._rpc("eth_blockNumber", [])
        try:
            return block_to_int(result)
        except (TypeError, ValueError) as e:
            raise APIError(
                f"Invalid block number from Alchemy: {result!r}",
                chain=self.chain,
                api_name=self.API_NAME,
            ) from e

    async def get_asset_transfers(
        self,
        address: str,
        from_block: int,
        to_block: int,
        direction: str,
        max_count: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        """
        Fetch one page of transfers where the wallet is sender ("from")
        or recipient ("to").
        """
        if direction not in DIRECTIONS:
            raise ValueError(f"Invalid transfer direction: {direction}")

        max_count = max_count or self.chain_config.max_transfers_per_query
        params: dict[str, Any] = {
            "category": TRANSFER_CATEGORIES,
            "fromBlock": block_to_hex(from_block),
            "toBlock": block_to_hex(to_block),
            "withMetadata": True,
            "order": "asc",
            "maxCount": hex(max_count),
        }
        if direction == "from":
            params["fromAddress"] = address
        else:
            params["toAddress"] = address

        result = await self._rpc("alchemy_getAssetTransfers", [params])
        transfers = (result or {}).get("transfers") or []

        if isinstance(result, dict) and result.get("pageKey"):
            logger.warning(
                f"[{self.chain.value}] Transfers for {address[:10]}... ({direction}) "
                f"truncated at {max_count} records"
            )
        return transfers

    async def close(self) -> None:
        """Close the aiohttp session if this client created it."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()
