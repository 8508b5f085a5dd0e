"""Programmatic Alembic migrations for the metadata store."""

from __future__ import annotations

import logging
from pathlib import Path

from alembic import command
from alembic.config import Config

logger = logging.getLogger(__name__)

ALEMBIC_DIR = Path(__file__).resolve().parents[3] / "alembic"


def to_sync_url(database_url: str) -> str:
    """Convert an async SQLAlchemy URL to its synchronous driver form.

    Alembic runs migrations synchronously, so `sqlite+aiosqlite://` becomes
    `sqlite://`.

    Args:
        database_url: SQLAlchemy URL.

    Returns:
        str: URL using the default synchronous driver.
    """

    scheme, sep, rest = str(database_url).partition("://")
    if not sep:
        raise ValueError(f"Invalid database URL: {database_url!r}")
    dialect = scheme.split("+", 1)[0]
    return f"{dialect}://{rest}"


def run_migrations(database_url: str, *, revision: str = "head") -> None:
    """Upgrade the database schema to the given revision.

    Args:
        database_url: SQLAlchemy URL (async or sync form).
        revision: Target revision.
    """

    cfg = Config()
    cfg.set_main_option("script_location", str(ALEMBIC_DIR))
    cfg.set_main_option("sqlalchemy.url", to_sync_url(database_url))
    # Keep the application's logging setup intact.
    cfg.attributes["configure_logger"] = False

    logger.info("Running database migrations (target=%s)", revision)
    command.upgrade(cfg, revision)
