"""
Tests for progress reporting and rate limiting.
"""

from unittest.mock import AsyncMock, patch

import pytest

from trade_sync.progress import NullProgressReporter, SyncStatusTracker
from trade_sync.rate_limiter import FixedDelayRateLimiter


class TestSyncStatusTracker:
    """Tests for SyncStatusTracker."""

    def test_initial_status(self):
        status = SyncStatusTracker().get_status()

        assert status.stage == "idle"
        assert not status.done

    def test_stage_and_progress_updates(self):
        tracker = SyncStatusTracker()
        tracker.init_sync()

        tracker.set_stage("parsing-trades", "Parsing...")
        tracker.set_progress(3, 10)

        status = tracker.get_status()
        assert status.stage == "parsing-trades"
        assert status.message == "Parsing..."
        assert (status.current, status.total) == (3, 10)

    def test_get_status_returns_copy(self):
        tracker = SyncStatusTracker()
        snapshot = tracker.get_status()

        tracker.set_stage("grouping")

        assert snapshot.stage == "idle"

    def test_done_and_error(self):
        tracker = SyncStatusTracker()

        tracker.set_done()
        assert tracker.get_status().to_dict()["stage"] == "complete"

        tracker.set_error("boom")
        status = tracker.get_status()
        assert status.error == "boom"
        assert status.stage == "error"
        assert status.done

    def test_null_reporter_accepts_everything(self):
        reporter = NullProgressReporter()
        reporter.set_stage("grouping", "msg")
        reporter.set_progress(1, 2)


class TestFixedDelayRateLimiter:
    """Tests for FixedDelayRateLimiter."""

    def test_negative_delay_rejected(self):
        with pytest.raises(ValueError):
            FixedDelayRateLimiter(-1)

    @pytest.mark.asyncio
    async def test_first_item_is_not_delayed(self):
        limiter = FixedDelayRateLimiter(0.3)

        with patch("trade_sync.rate_limiter.asyncio.sleep", new_callable=AsyncMock) as sleep:
            await limiter.wait()
            await limiter.wait()
            await limiter.wait()

        assert sleep.await_count == 2
        sleep.assert_awaited_with(0.3)
        assert limiter.items_processed == 3

    @pytest.mark.asyncio
    async def test_reset_starts_new_cycle(self):
        limiter = FixedDelayRateLimiter(0.3)

        with patch("trade_sync.rate_limiter.asyncio.sleep", new_callable=AsyncMock) as sleep:
            await limiter.wait()
            limiter.reset()
            await limiter.wait()

        sleep.assert_not_awaited()
