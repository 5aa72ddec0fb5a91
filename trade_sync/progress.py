"""
Sync Progress Reporting - Advisory, write-only progress observers.

Progress is diagnostic only. Reporters never raise and never take part in
control flow; last write wins.
"""

import logging
import time
from dataclasses import asdict, dataclass, field
from typing import Any, Optional, Protocol


logger = logging.getLogger(__name__)


class ProgressReporter(Protocol):
    """Observer injected into the sync engine."""

    def set_stage(self, stage: str, message: Optional[str] = None) -> None:
        ...

    def set_progress(self, current: int, total: int, message: Optional[str] = None) -> None:
        ...


class NullProgressReporter:
    """Discards all progress updates."""

    def set_stage(self, stage: str, message: Optional[str] = None) -> None:
        pass

    def set_progress(self, current: int, total: int, message: Optional[str] = None) -> None:
        pass


@dataclass
class SyncStatus:
    stage: str = "idle"
    current: int = 0
    total: int = 0
    message: str = ""
    updated_at: float = field(default_factory=time.time)
    done: bool = False
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class SyncStatusTracker:
    """
    In-memory progress tracker for status polling.

    Every method swallows its own errors: progress reporting must never
    break a sync.
    """

    def __init__(self) -> None:
        self._status = SyncStatus()

    def init_sync(self) -> None:
        self._status = SyncStatus(stage="fetching-transfers", message="Starting sync...")

    def set_stage(self, stage: str, message: Optional[str] = None) -> None:
        try:
            self._status.stage = stage
            if message:
                self._status.message = message
            self._status.updated_at = time.time()
        except Exception as e:
            logger.error(f"Error setting sync stage: {e}")

    def set_progress(self, current: int, total: int, message: Optional[str] = None) -> None:
        try:
            self._status.current = current
            self._status.total = total
            if message:
                self._status.message = message
            self._status.updated_at = time.time()
        except Exception as e:
            logger.error(f"Error setting sync progress: {e}")

    def set_done(self) -> None:
        self._status.done = True
        self._status.stage = "complete"
        self._status.message = "Sync complete!"
        self._status.updated_at = time.time()

    def set_error(self, message: str) -> None:
        self._status.error = message
        self._status.done = True
        self._status.stage = "error"
        self._status.message = f"Error: {message}"
        self._status.updated_at = time.time()

    def get_status(self) -> SyncStatus:
        """Snapshot copy of the current status."""
        return SyncStatus(**asdict(self._status))
