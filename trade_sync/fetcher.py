"""
Transfer Fetcher - Two directional transfer queries per cycle.

Malformed records are rejected here so ambiguous values never reach
amount arithmetic.
"""

import logging
from typing import Any, Optional, Protocol

from .blocks import BlockRange
from .exceptions import ParseError
from .grouping import merge_transfers
from .models import Chain, RawTransfer


logger = logging.getLogger(__name__)


class TransferSource(Protocol):
    """Transfer query capability (AlchemyClient satisfies it)."""

    async def get_asset_transfers(
        self,
        address: str,
        from_block: int,
        to_block: int,
        direction: str,
        max_count: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        ...


def parse_transfers(
    payloads: list[dict[str, Any]],
    chain: Optional[Chain] = None,
) -> tuple[list[RawTransfer], int]:
    """Parse provider records; returns (transfers, rejected_count)."""
    transfers: list[RawTransfer] = []
    rejected = 0
    for payload in payloads:
        try:
            transfers.append(RawTransfer.from_payload(payload))
        except ParseError as e:
            rejected += 1
            prefix = f"[{chain.value}] " if chain else ""
            logger.warning(f"{prefix}Rejected malformed transfer: {e.message}")
    return transfers, rejected


class TransferFetcher:
    """
    Retrieves a wallet's transfers over a block range.

    Errors from the source propagate; the cycle fails without advancing
    the cursor.
    """

    def __init__(
        self,
        source: TransferSource,
        chain: Chain,
        max_count: Optional[int] = None,
    ) -> None:
        self.source = source
        self.chain = chain
        self.max_count = max_count

    async def fetch_direction(
        self,
        wallet_address: str,
        block_range: BlockRange,
        direction: str,
    ) -> list[RawTransfer]:
        payloads = await self.source.get_asset_transfers(
            wallet_address,
            block_range.from_block,
            block_range.to_block,
            direction,
            self.max_count,
        )
        transfers, rejected = parse_transfers(payloads, self.chain)
        logger.info(
            f"[{self.chain.value}] Fetched transfers {direction.upper()} wallet: "
            f"{len(transfers)} ({rejected} rejected)"
        )
        return transfers

    async def fetch(
        self,
        wallet_address: str,
        block_range: BlockRange,
    ) -> list[RawTransfer]:
        """Fetch sender-side and recipient-side transfers, merged and deduplicated."""
        outgoing = await self.fetch_direction(wallet_address, block_range, "from")
        incoming = await self.fetch_direction(wallet_address, block_range, "to")

        transfers = merge_transfers(outgoing, incoming)
        logger.info(f"[{self.chain.value}] Total unique transfers: {len(transfers)}")
        return transfers
