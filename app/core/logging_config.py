"""Logging configuration for the directory archiver.

This module configures a production-grade Python logger with:
- A custom TRACE level.
- Console output.
- Rotating file output under `logs/` (by default), including separate
  error-only and daily log files for easier triage.

The configuration is designed to be safe to call multiple times.
"""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler, TimedRotatingFileHandler
from pathlib import Path
from typing import Optional


TRACE_LEVEL_NUM = 5


def _install_trace_level() -> None:
    """Install the TRACE logging level and `Logger.trace` helper.

    Returns:
        None
    """

    if logging.getLevelName(TRACE_LEVEL_NUM) != "TRACE":
        logging.addLevelName(TRACE_LEVEL_NUM, "TRACE")

    if not hasattr(logging.Logger, "trace"):

        def trace(self: logging.Logger, message: str, *args, **kwargs) -> None:
            """Log a message with level TRACE.

            Args:
                message: Log message.
                *args: Positional args passed to logging.
                **kwargs: Keyword args passed to logging.

            Returns:
                None
            """

            if self.isEnabledFor(TRACE_LEVEL_NUM):
                self._log(TRACE_LEVEL_NUM, message, args, **kwargs)

        logging.Logger.trace = trace  # type: ignore[attr-defined]


def resolve_log_level(log_level: str, *, debug: bool = False) -> int:
    """Resolve a level name (including TRACE) to its numeric value.

    Args:
        log_level: Level name, e.g. INFO. Empty selects INFO, or DEBUG when debug is set.
        debug: Whether debug mode is enabled.

    Returns:
        int: Numeric log level.

    Raises:
        ValueError: When the provided log_level is invalid.
    """

    resolved_level_name = str(log_level or "").strip().upper()
    if not resolved_level_name:
        resolved_level_name = "DEBUG" if debug else "INFO"

    if resolved_level_name == "TRACE":
        return TRACE_LEVEL_NUM

    resolved_level = getattr(logging, resolved_level_name, None)
    if not isinstance(resolved_level, int):
        raise ValueError(f"Invalid log level: {log_level}")
    return resolved_level


def _tag(handler: logging.Handler, formatter: logging.Formatter, level: int) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(formatter)
    handler._archiver_handler = True  # type: ignore[attr-defined]
    return handler


def configure_logging(
    *,
    log_dir: str = "logs",
    log_level: str = "INFO",
    debug: bool = False,
    log_filename: str = "archiver.log",
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 5,
) -> None:
    """Configure application-wide logging.

    Args:
        log_dir: Directory where log files are stored.
        log_level: Root log level name (e.g. INFO, DEBUG, TRACE).
        debug: When True, defaults to DEBUG unless log_level explicitly overrides it.
        log_filename: Log file name (within log_dir).
        max_bytes: Rotate the log file after this size.
        backup_count: Number of rotated files to keep.

    Returns:
        None

    Raises:
        ValueError: When the provided log_level is invalid.
    """

    _install_trace_level()

    root = logging.getLogger()
    if getattr(root, "_archiver_logging_configured", False):
        return

    resolved_level = resolve_log_level(log_level, debug=debug)
    root.setLevel(resolved_level)

    fmt = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"
    formatter = logging.Formatter(fmt=fmt, datefmt=datefmt)

    root.addHandler(_tag(logging.StreamHandler(), formatter, resolved_level))

    log_filename_path = Path(log_filename)
    suffix = log_filename_path.suffix or ".log"
    error_filename = f"{log_filename_path.stem}.error{suffix}"
    daily_filename = f"{log_filename_path.stem}.day{suffix}"
    daily_error_filename = f"{log_filename_path.stem}.day.error{suffix}"

    log_path = Path(log_dir) / str(log_filename)
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        root.addHandler(
            _tag(
                RotatingFileHandler(
                    filename=str(log_path),
                    maxBytes=max_bytes,
                    backupCount=backup_count,
                    encoding="utf-8",
                ),
                formatter,
                resolved_level,
            )
        )
        root.addHandler(
            _tag(
                RotatingFileHandler(
                    filename=str(Path(log_dir) / error_filename),
                    maxBytes=max_bytes,
                    backupCount=backup_count,
                    encoding="utf-8",
                ),
                formatter,
                logging.ERROR,
            )
        )

        for filename, level in ((daily_filename, resolved_level), (daily_error_filename, logging.ERROR)):
            daily_handler = TimedRotatingFileHandler(
                filename=str(Path(log_dir) / filename),
                when="midnight",
                backupCount=backup_count,
                utc=True,
                encoding="utf-8",
            )
            daily_handler.suffix = "%Y-%m-%d"  # type: ignore[attr-defined]
            root.addHandler(_tag(daily_handler, formatter, level))
    except OSError:
        logging.getLogger(__name__).warning(
            "Failed to configure file logging under %s; continuing with console-only logging",
            log_dir,
        )

    logging.captureWarnings(True)
    root._archiver_logging_configured = True  # type: ignore[attr-defined]


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return a logger instance.

    Args:
        name: Logger name.

    Returns:
        logging.Logger: Logger instance.
    """

    return logging.getLogger(name or __name__)
