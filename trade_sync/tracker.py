"""
Cursor Tracker - Forward-only sync position per (wallet, chain).
"""

import logging
from typing import Optional, Protocol

from .blocks import block_to_hex, block_to_int, is_unset_cursor
from .models import Chain


logger = logging.getLogger(__name__)


class CursorStore(Protocol):
    """Durable cursor persistence (TradeStore satisfies it)."""

    def get_cursor(self, wallet_address: str, chain: Chain) -> Optional[str]:
        ...

    def set_cursor(self, wallet_address: str, chain: Chain, cursor: str) -> str:
        ...


def next_cursor(previous: Optional[str], to_block: int) -> str:
    """The cursor after a cycle ending at to_block. Never lower than previous."""
    previous_block = 0 if is_unset_cursor(previous) else block_to_int(previous)
    return block_to_hex(max(previous_block, to_block))


class CursorTracker:
    """
    Computes and persists the next cursor once per successful cycle.

    The cursor moves to the cycle's to_block whether or not any trades were
    produced.
    """

    def __init__(self, store: CursorStore) -> None:
        self.store = store

    def current(self, wallet_address: str, chain: Chain) -> Optional[str]:
        return self.store.get_cursor(wallet_address, chain)

    def advance(
        self,
        wallet_address: str,
        chain: Chain,
        to_block: int,
        previous: Optional[str] = None,
    ) -> str:
        """
        Persist the cursor for a completed cycle.

        Raises:
            StorageError: If the cursor cannot be stored
        """
        if previous is None:
            previous = self.current(wallet_address, chain)
        cursor = next_cursor(previous, to_block)
        stored = self.store.set_cursor(wallet_address, chain, cursor)
        logger.info(f"[{chain.value}] Cursor for {wallet_address} advanced to {stored} (block {block_to_int(stored)})")
        return stored
