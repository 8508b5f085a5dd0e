"""Metadata store database lifecycle helpers."""

from __future__ import annotations

import logging

from fastapi.concurrency import run_in_threadpool

from backend.database.migrations import run_migrations
from backend.database.sql_handler import SQLHandler, is_memory_url

logger = logging.getLogger(__name__)


async def initialize_database(database_url: str, *, migrate: bool = True) -> SQLHandler:
    """Create a SQL handler and make sure the schema exists.

    File-backed databases are upgraded with Alembic when `migrate` is set;
    in-memory databases (and `migrate=False`) get the ORM schema directly.

    Args:
        database_url: SQLAlchemy async URL.
        migrate: Apply Alembic migrations.

    Returns:
        SQLHandler: Ready-to-use handler.
    """

    handler = SQLHandler(database_url)
    if migrate and not is_memory_url(database_url):
        await run_in_threadpool(run_migrations, database_url)
    else:
        await handler.create_tables()
    logger.info("Metadata store ready (%s)", database_url)
    return handler


async def close_database(handler: SQLHandler) -> None:
    """Close the handler's engine."""

    await handler.close()
