"""
Block Range Resolution - Turns a stored cursor into a closed block window.

Cursors are opaque hex block strings. "0" / "0x0" are reserved as
"no cursor yet" and never read as a real block-zero cursor.
"""

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from .config import SyncConfig, get_config
from .models import Chain


logger = logging.getLogger(__name__)


UNSET_CURSORS = frozenset({"", "0", "0x0"})
RESET_CURSOR = "0"

# () -> current chain tip
TipQuery = Callable[[], Awaitable[int]]


def block_to_int(block: Any) -> int:
    """Parse a hex string, decimal string or int block number (None -> 0)."""
    if block is None or block == "":
        return 0
    if isinstance(block, bool):
        raise ValueError(f"Invalid block number: {block!r}")
    if isinstance(block, int):
        return block
    text = str(block).strip()
    if text.lower().startswith("0x"):
        return int(text, 16)
    return int(text, 10)


def block_to_hex(block: Any) -> str:
    """Format a block number as a 0x-prefixed hex string."""
    if isinstance(block, str) and block.lower().startswith("0x"):
        return "0x" + format(int(block, 16), "x")
    return "0x" + format(block_to_int(block), "x")


def is_unset_cursor(cursor: Optional[str]) -> bool:
    """True when no sync has completed for the wallet yet."""
    if cursor is None:
        return True
    return cursor.strip().lower() in UNSET_CURSORS


@dataclass(frozen=True)
class BlockRange:
    """Closed, reproducible block window for one cycle."""
    from_block: int
    to_block: int

    @property
    def is_empty(self) -> bool:
        return self.from_block >= self.to_block

    @property
    def from_hex(self) -> str:
        return block_to_hex(self.from_block)

    @property
    def to_hex(self) -> str:
        return block_to_hex(self.to_block)

    def __str__(self) -> str:
        return f"{self.from_block}..{self.to_block}"


class BlockRangeResolver:
    """
    Resolves [from_block, to_block] for a wallet cycle.

    from_block backs off safety_margin_blocks from the cursor to tolerate
    indexing lag. Re-delivered transfers are harmless because
    classification and upsert are idempotent.
    """

    def __init__(
        self,
        tip_query: TipQuery,
        config: Optional[SyncConfig] = None,
    ) -> None:
        self.config = config or get_config()
        self._tip_query = tip_query

    @property
    def safety_margin(self) -> int:
        return self.config.safety_margin_blocks

    def start_block(self, cursor: Optional[str], chain: Chain) -> int:
        """First block to scan for the given cursor."""
        if not is_unset_cursor(cursor):
            cursor_block = block_to_int(cursor)
            if cursor_block > 0:
                return max(0, cursor_block - self.safety_margin)

        chain_config = self.config.chains.get(chain)
        if chain_config and chain_config.launch_block is not None:
            return chain_config.launch_block
        return 0

    async def resolve(self, cursor: Optional[str], chain: Chain) -> BlockRange:
        """
        Resolve the block window. The chain tip is queried fresh every call.

        Raises:
            APIError: If the tip query fails
        """
        from_block = self.start_block(cursor, chain)
        to_block = await self._tip_query()

        block_range = BlockRange(from_block=from_block, to_block=to_block)
        logger.info(f"[{chain.value}] Syncing blocks: {from_block} to {to_block}")
        if block_range.is_empty:
            logger.info(f"[{chain.value}] Already synced up to block {to_block}, no new blocks to process")
        return block_range
