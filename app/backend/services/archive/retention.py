"""Retention policy planning and enforcement for directory archives.

It supports two limits, either of which may be absent:
- `max_age`: archives created strictly before `now - max_age` expire
- `max_backups`: only the newest N archives of a directory are kept

An archive expires if either limit selects it.

The planner operates on a list of `ArchiveRecord` metadata and returns (keep,
evict) decisions. The manager applies them: for every evicted record the
archive file is deleted first and the record second.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

from fastapi.concurrency import run_in_threadpool

from backend.services.archive.archiver import resolve_source
from backend.services.archive.config import DirectorySpec
from backend.services.archive.errors import ArchiveIOError, StoreError
from backend.services.archive.store import ArchiveStore
from backend.services.archive.types import ArchiveRecord, archive_path, ensure_utc

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetentionPolicy:
    """Retention limits for one directory.

    Attributes:
        max_age: Maximum archive age; None means no age limit.
        max_backups: Maximum number of archives kept; None means no count limit.
    """

    max_age: Optional[timedelta] = None
    max_backups: Optional[int] = None

    @classmethod
    def from_spec(cls, spec: DirectorySpec) -> "RetentionPolicy":
        return cls(max_age=spec.max_age, max_backups=spec.max_backups)


@dataclass(frozen=True)
class UnresolvedEviction:
    """An expired record that could not be removed."""

    record: ArchiveRecord
    kind: str
    error: str


@dataclass
class EvictionResult:
    """Outcome of one retention pass.

    Attributes:
        evicted: Records whose file and row were both removed.
        missing: Records removed although their file was already gone (subset of evicted).
        unresolved: Records left in place because removal failed.
    """

    evicted: List[ArchiveRecord] = field(default_factory=list)
    missing: List[ArchiveRecord] = field(default_factory=list)
    unresolved: List[UnresolvedEviction] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.unresolved


def plan_eviction(
    records: Sequence[ArchiveRecord],
    policy: RetentionPolicy,
    *,
    now: Optional[datetime] = None,
) -> Tuple[List[ArchiveRecord], List[ArchiveRecord]]:
    """Return (keep, evict) lists according to the retention policy.

    Args:
        records: Existing records of a single directory.
        policy: Retention policy.
        now: Override current time.

    Returns:
        Tuple[List[ArchiveRecord], List[ArchiveRecord]]: Keep (newest first) and
        evict (oldest first) lists.
    """

    if not records:
        return [], []

    now = ensure_utc(now or datetime.now(timezone.utc))
    newest_first = sorted(records, key=lambda r: (ensure_utc(r.created_at), r.id), reverse=True)

    expired_ids = set()
    if policy.max_age is not None:
        cutoff = now - policy.max_age
        expired_ids.update(r.id for r in newest_first if ensure_utc(r.created_at) < cutoff)

    if policy.max_backups is not None and policy.max_backups >= 0:
        expired_ids.update(r.id for r in newest_first[policy.max_backups:])

    keep = [r for r in newest_first if r.id not in expired_ids]
    evict = [r for r in reversed(newest_first) if r.id in expired_ids]
    return keep, evict


def _delete_archive_file(path: Path) -> bool:
    """Delete an archive file.

    Returns:
        bool: True if the file was deleted, False if it did not exist.
    """

    try:
        os.remove(path)
    except FileNotFoundError:
        return False
    return True


class RetentionManager:
    """Apply retention policies to a directory's archives."""

    def __init__(self, store: ArchiveStore):
        """Initialize the manager.

        Args:
            store: Metadata store holding the archive records.
        """

        self.store = store

    async def evict(self, spec: DirectorySpec, *, now: Optional[datetime] = None) -> EvictionResult:
        """Delete the directory's expired archives and their records.

        Failures on individual records do not stop the batch; they are
        collected in `EvictionResult.unresolved`.

        Args:
            spec: Directory configuration (source, output root and limits).
            now: Override current time.

        Returns:
            EvictionResult: What was removed and what was not.

        Raises:
            PathError: If the input directory cannot be resolved.
            StoreError: If the records cannot be listed.
        """

        policy = RetentionPolicy.from_spec(spec)
        result = EvictionResult()
        if policy.max_age is None and policy.max_backups is None:
            return result

        now = ensure_utc(now or datetime.now(timezone.utc))
        created_before = None
        if policy.max_backups is None:
            # Age-only: the store returns just the expired rows.
            created_before = now - policy.max_age

        source = str(resolve_source(spec.input_path))
        records = await self.store.list_for_source(source, created_before=created_before)
        _, candidates = plan_eviction(records, policy, now=now)

        for record in candidates:
            await self._evict_one(record, spec.output_path, result)

        if result.evicted:
            logger.info(
                "Retention for %s removed %d archive(s) (%d already missing)",
                spec.name,
                len(result.evicted),
                len(result.missing),
            )
        if result.unresolved:
            logger.error(
                "Retention for %s left %d expired archive(s) in place: %s",
                spec.name,
                len(result.unresolved),
                ", ".join(u.record.archive_id for u in result.unresolved),
            )
        return result

    async def _evict_one(self, record: ArchiveRecord, output_path: Union[str, Path], result: EvictionResult) -> None:
        path = archive_path(output_path, record)

        try:
            existed = await run_in_threadpool(_delete_archive_file, path)
        except OSError as exc:
            logger.error("Failed to delete archive %s: %s", path, exc)
            result.unresolved.append(UnresolvedEviction(record=record, kind=ArchiveIOError.kind, error=str(exc)))
            return

        if not existed:
            logger.warning("Archive file already missing, removing its record: %s", path)

        try:
            await self.store.delete(record)
        except StoreError as exc:
            logger.error("Deleted %s but failed to remove its record: %s", path, exc)
            result.unresolved.append(UnresolvedEviction(record=record, kind=exc.kind, error=str(exc)))
            return

        logger.debug("Evicted archive %s", path)
        result.evicted.append(record)
        if not existed:
            result.missing.append(record)
