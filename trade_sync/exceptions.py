"""
Trade Sync Exceptions - Error hierarchy for the sync engine.

Fetch-phase errors (APIError, RateLimitError) are fatal for a cycle and
propagate to the caller. Per-transaction errors are caught by the engine
and only skip the affected group.
"""

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from .models import Chain


class TradeSyncError(Exception):
    """Base exception for all trade sync errors."""

    def __init__(
        self,
        message: str,
        chain: Optional["Chain"] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.chain = chain
        self.details = details or {}
        self.timestamp = datetime.now(timezone.utc)
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "chain": self.chain.value if self.chain else None,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
        }


class APIError(TradeSyncError):
    """External API (Alchemy, CryptoCompare) error."""

    def __init__(
        self,
        message: str,
        chain: Optional["Chain"] = None,
        api_name: str = "",
        status_code: Optional[int] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, chain, details)
        self.api_name = api_name
        self.status_code = status_code


class RateLimitError(APIError):
    """Rate limit exceeded for an upstream API."""

    def __init__(
        self,
        message: str,
        chain: Optional["Chain"] = None,
        api_name: str = "",
        retry_after_seconds: Optional[int] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, chain, api_name, 429, details)
        self.retry_after_seconds = retry_after_seconds


class ParseError(TradeSyncError):
    """Failed to parse a provider payload."""

    def __init__(
        self,
        message: str,
        chain: Optional["Chain"] = None,
        raw_data: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, chain, details)
        self.raw_data = raw_data[:500] if raw_data else None


class ClassificationError(TradeSyncError):
    """A transaction group could not be turned into a trade."""

    def __init__(
        self,
        message: str,
        tx_hash: str,
        chain: Optional["Chain"] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, chain, details)
        self.tx_hash = tx_hash


class PriceUnavailableError(TradeSyncError):
    """Historical price lookup returned no usable value."""
    pass


class StorageError(TradeSyncError):
    """Database/storage operation error."""
    pass


class CursorRegressionError(StorageError):
    """Attempt to move a sync cursor backward."""

    def __init__(
        self,
        wallet_address: str,
        current_cursor: str,
        new_cursor: str,
        chain: Optional["Chain"] = None,
    ) -> None:
        super().__init__(
            f"Refusing to move cursor for {wallet_address} "
            f"from {current_cursor} back to {new_cursor}",
            chain,
            {"current_cursor": current_cursor, "new_cursor": new_cursor},
        )
        self.wallet_address = wallet_address
        self.current_cursor = current_cursor
        self.new_cursor = new_cursor


class ConfigurationError(TradeSyncError):
    """Invalid configuration."""
    pass
