"""Value types shared by the archiver, the metadata store and retention."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Union


ARCHIVE_SUFFIX = ".zip"


@dataclass(frozen=True)
class ArchiveRecord:
    """Metadata about one archive.

    Attributes:
        id: Store-assigned identifier.
        source_path: Canonical absolute path of the archived directory.
        archive_id: Unique archive token (UUID4 string).
        created_at: Creation time (timezone-aware UTC).
    """

    id: int
    source_path: str
    archive_id: str
    created_at: datetime


def ensure_utc(value: datetime) -> datetime:
    """Return `value` as a timezone-aware UTC datetime.

    Naive values are assumed to already be UTC (SQLite drops the offset).
    """

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def archive_filename(created_at: datetime, archive_id: str) -> str:
    """Build the archive file name `<unix timestamp>-<archive id>.zip`.

    This is the only link between a record and its file, so the archiver and
    the retention manager must both go through it.

    Args:
        created_at: Archive creation time.
        archive_id: Archive id.

    Returns:
        str: File name.
    """

    timestamp = int(ensure_utc(created_at).timestamp())
    return f"{timestamp}-{archive_id}{ARCHIVE_SUFFIX}"


def archive_path(output_path: Union[str, Path], record: ArchiveRecord) -> Path:
    """Return the location of a record's archive under an output root."""

    return Path(output_path) / archive_filename(record.created_at, record.archive_id)
