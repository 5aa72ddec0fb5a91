"""
Fixed-delay rate limiter for sequential per-transaction processing.
"""

import asyncio


class FixedDelayRateLimiter:
    """
    Sleeps a fixed delay before every item except the first of a cycle.

    Per-cycle volume is bounded by the fetch page cap, so a fixed delay
    keeps downstream lookups within upstream rate limits.
    """

    def __init__(self, delay_seconds: float = 0.3) -> None:
        if delay_seconds < 0:
            raise ValueError("delay_seconds must be >= 0")
        self.delay_seconds = delay_seconds
        self._items = 0

    def reset(self) -> None:
        """Start a new cycle."""
        self._items = 0

    async def wait(self) -> None:
        if self._items > 0 and self.delay_seconds > 0:
            await asyncio.sleep(self.delay_seconds)
        self._items += 1

    @property
    def items_processed(self) -> int:
        return self._items
