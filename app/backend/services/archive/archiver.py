"""Directory archiver.

Builds one ZIP archive from the current contents of a directory and records it
in the metadata store.

Archive layout:
    <output>/<unix timestamp>-<archive id>.zip

Each entry is named by its path relative to the archived directory, using
forward slashes, and compressed with deflate.

Invariants:
    - The archive is fully written, fsynced and renamed into place before the
      metadata record is inserted
    - A failed archive leaves neither a record nor a partial file behind
    - A store failure after the rename leaves an orphaned file, never a record
      without a file
"""

from __future__ import annotations

import logging
import os
import uuid
import zipfile
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Union

from fastapi.concurrency import run_in_threadpool

from backend.services.archive.errors import ArchiveIOError, PathError, StoreError
from backend.services.archive.store import ArchiveStore
from backend.services.archive.types import ArchiveRecord, archive_filename
from backend.services.archive.walker import walk_files

logger = logging.getLogger(__name__)


def resolve_source(input_path: Union[str, Path]) -> Path:
    """Resolve a directory to its canonical absolute path.

    Args:
        input_path: Directory to archive.

    Returns:
        Path: Canonical path.

    Raises:
        PathError: If the path does not exist or is not a directory.
    """

    try:
        resolved = Path(input_path).resolve(strict=True)
    except (OSError, RuntimeError) as exc:
        raise PathError(f"Input path does not exist: {input_path}") from exc

    if not resolved.is_dir():
        raise PathError(f"Input path is not a directory: {resolved}")
    if not os.access(resolved, os.R_OK | os.X_OK):
        raise PathError(f"Input path is not readable: {resolved}")
    return resolved


def write_archive(source: Path, files: List[Path], destination: Path) -> int:
    """Write a deflate-compressed ZIP of `files` to `destination`.

    The archive is built in a hidden temporary file next to `destination`,
    flushed to disk and then atomically renamed.

    Args:
        source: Archived root; entry names are relative to it.
        files: Files to add.
        destination: Final archive path.

    Returns:
        int: Size of the written archive in bytes.

    Raises:
        ArchiveIOError: If any file cannot be read or the archive cannot be written.
    """

    partial = destination.with_name(f".{destination.name}.partial")
    try:
        with open(partial, "wb") as raw:
            with zipfile.ZipFile(raw, mode="w", compression=zipfile.ZIP_DEFLATED) as zf:
                for path in files:
                    arcname = path.relative_to(source).as_posix()
                    logger.debug("Adding file: %s", arcname)
                    zf.write(path, arcname=arcname)
            raw.flush()
            os.fsync(raw.fileno())
        os.replace(partial, destination)
        _fsync_directory(destination.parent)
    except (OSError, zipfile.BadZipFile, ValueError) as exc:
        try:
            partial.unlink()
        except FileNotFoundError:
            pass
        except OSError as cleanup_exc:
            logger.warning("Failed to remove partial archive %s: %s", partial, cleanup_exc)
        raise ArchiveIOError(f"Failed to write archive {destination}: {exc}") from exc

    return destination.stat().st_size


def _fsync_directory(path: Path) -> None:
    """Persist a rename by syncing its directory (no-op where unsupported)."""

    if not hasattr(os, "O_DIRECTORY"):
        return
    fd = os.open(path, os.O_RDONLY | os.O_DIRECTORY)
    try:
        os.fsync(fd)
    finally:
        os.close(fd)


class Archiver:
    """Create directory archives and record them."""

    def __init__(self, store: ArchiveStore):
        """Initialize the archiver.

        Args:
            store: Metadata store receiving one record per archive.
        """

        self.store = store

    def _build(self, source: Path, output: Path, archive_id: str, created_at: datetime) -> Path:
        files = walk_files(source)
        logger.debug("Files to archive under %s: %d", source, len(files))

        if not output.is_dir():
            raise ArchiveIOError(f"Output path is not a directory: {output}")

        destination = output / archive_filename(created_at, archive_id)
        logger.info("Creating archive: %s", destination)
        size = write_archive(source, files, destination)
        logger.info("Archive created at %s (%d files, %d bytes)", destination, len(files), size)
        return destination

    async def archive(self, input_path: Union[str, Path], output_path: Union[str, Path]) -> ArchiveRecord:
        """Archive a directory and record the result.

        Args:
            input_path: Directory to archive.
            output_path: Directory where the archive file is written.

        Returns:
            ArchiveRecord: The stored record.

        Raises:
            PathError: If the input directory does not exist.
            ArchiveIOError: If walking or writing fails.
            StoreError: If the record cannot be stored (the archive file stays on disk).
        """

        source = resolve_source(input_path)
        archive_id = str(uuid.uuid4())
        created_at = datetime.now(timezone.utc).replace(microsecond=0)

        destination = await run_in_threadpool(self._build, source, Path(output_path), archive_id, created_at)

        try:
            return await self.store.insert(source_path=str(source), archive_id=archive_id, created_at=created_at)
        except StoreError:
            logger.error("Archive %s was written but could not be recorded; it is now orphaned", destination)
            raise
