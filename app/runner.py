#!/usr/bin/env python3
"""Directory archiver runner service.

This script runs as a long-lived service that archives the configured
directories on their cron schedules and applies their retention policies.
It can run in two modes:
1. Scheduled mode (default): fire jobs on schedule until SIGINT/SIGTERM
2. Once mode: run every directory's job once and exit

Usage:
    python runner.py [--config PATH] [--database-url URL] [--tick SECONDS] [--once]
"""

import argparse
import asyncio
import logging
import signal
import sys
from typing import List, Optional

from backend.database import close_database, initialize_database
from backend.services.archive.config import ArchiverConfig, load_config
from backend.services.archive.errors import ConfigError
from backend.services.archive.executor import JobExecutor, JobResult
from backend.services.archive.scheduler import JobScheduler
from backend.services.archive.store import SQLArchiveStore
from core.logging_config import configure_logging, get_logger
from core.settings import settings

try:
    configure_logging(
        log_dir=settings.LOG_DIR,
        log_level=settings.LOG_LEVEL,
        debug=settings.DEBUG,
        log_filename=settings.LOG_FILENAME,
    )
except ValueError:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
logger = get_logger(__name__)


def summarize_results(results: List[JobResult]) -> int:
    """Log a summary of job results and return the number of failures.

    Args:
        results: Completed job results.

    Returns:
        int: Number of failed jobs.
    """

    failures = 0
    for result in results:
        if result.ok:
            evicted = len(result.eviction.evicted) if result.eviction else 0
            logger.info("%s: archived %s, evicted %d", result.directory, result.record.archive_id, evicted)
        else:
            failures += 1
            logger.error("%s: failed (%s): %s", result.directory, result.error_type, result.error)
    return failures


def _install_signal_handlers(scheduler: JobScheduler) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, scheduler.request_stop)
        except (NotImplementedError, RuntimeError):
            # Not available on every platform (e.g. Windows event loops).
            logger.debug("Signal handler for %s not installed", sig)


async def run(
    config: ArchiverConfig,
    *,
    database_url: str,
    tick_seconds: float,
    once: bool = False,
    migrate: bool = True,
) -> int:
    """Start the metadata store and run the scheduler.

    Args:
        config: Validated directory configuration.
        database_url: SQLAlchemy async URL of the metadata store.
        tick_seconds: Scheduler tick interval.
        once: Run every directory once and exit.
        migrate: Apply database migrations at startup.

    Returns:
        int: Process exit code.
    """

    handler = await initialize_database(database_url, migrate=migrate)
    try:
        executor = JobExecutor(SQLArchiveStore(handler))
        scheduler = JobScheduler(config.directories, executor, tick_seconds=tick_seconds)

        if once:
            results = await scheduler.run_once()
            return 1 if summarize_results(results) else 0

        _install_signal_handlers(scheduler)
        logger.info("Archiver started with %d director(ies)", len(config.directories))
        await scheduler.run_forever()
        logger.info("Archiver stopped")
        return 0
    finally:
        await close_database(handler)


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point."""

    parser = argparse.ArgumentParser(description="Directory archiver runner")
    parser.add_argument(
        "--config",
        default=settings.CONFIG_PATH,
        help="Path to the JSON directory configuration (default: config.json)",
    )
    parser.add_argument(
        "--database-url",
        default=settings.DATABASE_URL,
        help="Metadata store URL (default: sqlite+aiosqlite:///db.sqlite)",
    )
    parser.add_argument(
        "--tick",
        type=float,
        default=settings.TICK_SECONDS,
        help="Maximum seconds between schedule evaluations (default: 1)",
    )
    parser.add_argument(
        "--no-migrate",
        action="store_true",
        default=not settings.RUN_MIGRATIONS,
        help="Create tables directly instead of running Alembic migrations",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run every directory once and exit",
    )

    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
    except ConfigError as exc:
        logger.error("%s", exc)
        return 1

    if not config.directories:
        logger.warning("No directories configured in %s", args.config)

    return asyncio.run(
        run(
            config,
            database_url=args.database_url,
            tick_seconds=args.tick,
            once=args.once,
            migrate=not args.no_migrate,
        )
    )


if __name__ == "__main__":
    sys.exit(main())
