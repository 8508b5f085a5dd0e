"""Async SQLAlchemy engine and session management."""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from models.sql.base import Base

logger = logging.getLogger(__name__)


def is_memory_url(database_url: str) -> bool:
    """Return True when the URL points at an in-memory SQLite database.

    Args:
        database_url: SQLAlchemy database URL.

    Returns:
        bool: Whether the database lives only in memory.
    """

    url = str(database_url or "").strip()
    return url.startswith("sqlite") and (url.endswith(":memory:") or url.rstrip("/").endswith(":"))


class SQLHandler:
    """Owns the async engine and the session factory for the metadata store.

    Each unit of work opens its own session through `AsyncSessionLocal()`
    and closes it when done; the handler itself holds no session.
    """

    def __init__(self, database_url: str, *, echo: bool = False):
        """Initialize the handler.

        Args:
            database_url: SQLAlchemy async URL, e.g. sqlite+aiosqlite:///db.sqlite.
            echo: Log emitted SQL.
        """

        self.database_url = database_url
        kwargs = {}
        if is_memory_url(database_url):
            # A single shared connection keeps the in-memory database alive.
            kwargs = {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}

        self.engine: AsyncEngine = create_async_engine(database_url, echo=echo, **kwargs)
        self.AsyncSessionLocal = async_sessionmaker(self.engine, expire_on_commit=False)

    async def create_tables(self) -> None:
        """Create all tables known to the ORM metadata if they are missing."""

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        """Dispose of the engine and its connections."""

        await self.engine.dispose()
        logger.debug("Closed database engine for %s", self.database_url)
