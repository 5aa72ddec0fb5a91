"""
Trade Store - Transaction-per-operation facade over the repositories.

Each call runs in its own transaction so one failing trade never rolls
back trades already saved in the same cycle.
"""

from typing import Optional

from ..models import CanonicalTrade, Chain
from .database import Database
from .repositories import SyncStateRepository, TradeRepository


class TradeStore:
    """Durable store for canonical trades and sync cursors."""

    def __init__(self, database: Database) -> None:
        self.database = database

    @classmethod
    def from_url(cls, database_url: Optional[str] = None) -> "TradeStore":
        """Open the database at database_url and ensure the tables exist."""
        database = Database(database_url)
        database.create_all()
        return cls(database)

    def upsert_trade(self, trade: CanonicalTrade) -> None:
        with self.database.session_scope() as session:
            TradeRepository(session).upsert_trade(trade)

    def get_trade(self, wallet_address: str, chain: Chain, tx_hash: str) -> Optional[CanonicalTrade]:
        with self.database.session_scope() as session:
            return TradeRepository(session).get_trade(wallet_address, chain, tx_hash)

    def list_trades(
        self,
        wallet_address: str,
        chain: Optional[Chain] = None,
        limit: Optional[int] = None,
    ) -> list[CanonicalTrade]:
        with self.database.session_scope() as session:
            return TradeRepository(session).list_trades(wallet_address, chain, limit)

    def count_trades(self, wallet_address: Optional[str] = None, chain: Optional[Chain] = None) -> int:
        with self.database.session_scope() as session:
            return TradeRepository(session).count_trades(wallet_address, chain)

    def get_cursor(self, wallet_address: str, chain: Chain) -> Optional[str]:
        with self.database.session_scope() as session:
            return SyncStateRepository(session).get_cursor(wallet_address, chain)

    def set_cursor(self, wallet_address: str, chain: Chain, cursor: str) -> str:
        with self.database.session_scope() as session:
            return SyncStateRepository(session).set_cursor(wallet_address, chain, cursor)

    def reset_wallet(self, wallet_address: str, chain: Chain, purge_trades: bool = True) -> int:
        """
        Reset a wallet so the next cycle resyncs it from the launch floor.

        The cursor reset and the optional trade purge share one
        transaction. Returns the number of trades deleted.
        """
        with self.database.session_scope() as session:
            deleted = 0
            if purge_trades:
                deleted = TradeRepository(session).delete_trades(wallet_address, chain)
            SyncStateRepository(session).reset_cursor(wallet_address, chain)
            return deleted

    def close(self) -> None:
        self.database.dispose()
