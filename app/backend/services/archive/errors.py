"""Error types raised by the archiver.

Every failure the archive pipeline can produce maps to one of these classes so
the job executor can report what kind of failure ended a run.
"""

from __future__ import annotations


class ArchiverError(Exception):
    """Base class for archiver failures."""

    kind = "error"


class ConfigError(ArchiverError):
    """Raised when the directory configuration is missing or invalid."""

    kind = "config"


class PathError(ArchiverError):
    """Raised when a directory to archive does not exist or cannot be read."""

    kind = "path"


class ArchiveIOError(ArchiverError):
    """Raised when walking, writing or deleting archive files fails."""

    kind = "io"


class StoreError(ArchiverError):
    """Raised when the metadata store cannot complete an operation."""

    kind = "store"
