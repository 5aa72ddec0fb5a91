"""
Database Engine and Session Management.

============================================================
PURPOSE
============================================================
Creates the SQLAlchemy engine for the configured database URL and
provides explicit transaction boundaries.

SQLite in-memory URLs share a single connection so that every
session sees the same database.

============================================================
"""

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ..config import get_config
from .base import Base


logger = logging.getLogger(__name__)


def _is_sqlite_memory(url: str) -> bool:
    return url.startswith("sqlite") and (url.endswith("://") or ":memory:" in url)


def _safe_url(url: str) -> str:
    return url.split("@")[-1]


def create_database_engine(database_url: Optional[str] = None, echo: bool = False) -> Engine:
    """
    Create a SQLAlchemy engine.

    Args:
        database_url: SQLAlchemy URL (defaults to the configured URL)
        echo: Log SQL statements

    Returns:
        SQLAlchemy Engine
    """
    url = database_url or get_config().database_url
    logger.info(f"Creating database engine for: {_safe_url(url)}")

    if _is_sqlite_memory(url):
        return create_engine(
            url,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
            echo=echo,
        )
    if url.startswith("sqlite"):
        database_path = make_url(url).database
        if database_path:
            Path(database_path).parent.mkdir(parents=True, exist_ok=True)
        return create_engine(url, connect_args={"check_same_thread": False}, echo=echo)
    return create_engine(url, pool_pre_ping=True, echo=echo)


class Database:
    """
    Engine plus session factory.

    Usage:
        db = Database("sqlite:///storage/trade_sync.db")
        db.create_all()
        with db.session_scope() as session:
            session.add(record)
    """

    def __init__(self, database_url: Optional[str] = None, echo: bool = False) -> None:
        self.engine = create_database_engine(database_url, echo=echo)
        self._session_factory = sessionmaker(
            bind=self.engine,
            autoflush=False,
            expire_on_commit=False,
        )

    def create_all(self) -> None:
        """Create all tables that do not exist yet."""
        Base.metadata.create_all(self.engine)
        logger.info("Database tables ensured")

    def get_session(self) -> Session:
        """New session. Caller is responsible for commit/close."""
        return self._session_factory()

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """
        Transaction scope.

        Commits only if no exception occurs. Rolls back on ANY exception
        and re-raises it.
        """
        session = self.get_session()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            logger.error(f"Database error, rolling back: {e}")
            session.rollback()
            raise
        except Exception as e:
            logger.error(f"Unexpected error, rolling back: {e}")
            session.rollback()
            raise
        finally:
            session.close()

    def dispose(self) -> None:
        self.engine.dispose()
