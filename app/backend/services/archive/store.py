"""Metadata store for archive records.

The store is the source of truth for which archives exist. Two
implementations are provided:
- `SQLArchiveStore`: durable store on top of an injected `SQLHandler`
- `MemoryArchiveStore`: process-local store, used in tests

Every operation is its own transaction; nothing is held open between calls.
"""

from __future__ import annotations

import asyncio
import itertools
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from backend.database.sql_handler import SQLHandler
from backend.services.archive.errors import StoreError
from backend.services.archive.repository import ArchiveRecordRepository
from backend.services.archive.types import ArchiveRecord, ensure_utc
from models.sql.archive_records import StoredArchive


class ArchiveStore(ABC):
    """Abstract metadata store interface."""

    @abstractmethod
    async def insert(self, *, source_path: str, archive_id: str, created_at: datetime) -> ArchiveRecord:
        """Persist a new archive record.

        Args:
            source_path: Canonical source directory.
            archive_id: Archive id.
            created_at: Creation timestamp.

        Returns:
            ArchiveRecord: The stored record, including its assigned id.

        Raises:
            StoreError: If the record cannot be stored.
        """

    @abstractmethod
    async def list_for_source(
        self,
        source_path: str,
        *,
        created_before: Optional[datetime] = None,
    ) -> List[ArchiveRecord]:
        """List records for a source directory, newest first.

        Args:
            source_path: Canonical source directory.
            created_before: Only include records created strictly before this time.

        Returns:
            List[ArchiveRecord]: Matching records.

        Raises:
            StoreError: If the store cannot be queried.
        """

    @abstractmethod
    async def delete(self, record: ArchiveRecord) -> bool:
        """Delete a record.

        Args:
            record: Record to delete.

        Returns:
            bool: True if a row was removed, False if it no longer existed.

        Raises:
            StoreError: If the delete fails.
        """


def _to_record(row: StoredArchive) -> ArchiveRecord:
    return ArchiveRecord(
        id=int(row.id),
        source_path=str(row.source_path),
        archive_id=str(row.archive_id),
        created_at=ensure_utc(row.created_at),
    )


class SQLArchiveStore(ArchiveStore):
    """Archive store backed by SQLAlchemy."""

    def __init__(self, handler: SQLHandler):
        """Initialize the store.

        Args:
            handler: SQL database handler.
        """

        self.handler = handler
        self.repo = ArchiveRecordRepository()

    async def insert(self, *, source_path: str, archive_id: str, created_at: datetime) -> ArchiveRecord:
        try:
            async with self.handler.AsyncSessionLocal() as session:
                row = await self.repo.create_record(
                    session,
                    source_path=source_path,
                    archive_id=archive_id,
                    created_at=ensure_utc(created_at),
                )
                return _to_record(row)
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to insert archive record {archive_id}: {exc}") from exc

    async def list_for_source(
        self,
        source_path: str,
        *,
        created_before: Optional[datetime] = None,
    ) -> List[ArchiveRecord]:
        if created_before is not None:
            created_before = ensure_utc(created_before)
        try:
            async with self.handler.AsyncSessionLocal() as session:
                rows = await self.repo.list_records(session, source_path, created_before=created_before)
                return [_to_record(row) for row in rows]
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to list archive records for {source_path}: {exc}") from exc

    async def delete(self, record: ArchiveRecord) -> bool:
        try:
            async with self.handler.AsyncSessionLocal() as session:
                return await self.repo.delete_record(session, record.id) > 0
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to delete archive record {record.archive_id}: {exc}") from exc


class MemoryArchiveStore(ArchiveStore):
    """In-memory archive store.

    Mirrors the SQL store's semantics (unique archive ids, newest-first
    listing) without any persistence.
    """

    def __init__(self):
        self._records: Dict[int, ArchiveRecord] = {}
        self._ids = itertools.count(1)
        self._lock = asyncio.Lock()

    async def insert(self, *, source_path: str, archive_id: str, created_at: datetime) -> ArchiveRecord:
        async with self._lock:
            if any(r.archive_id == archive_id for r in self._records.values()):
                raise StoreError(f"Duplicate archive id: {archive_id}")
            record = ArchiveRecord(
                id=next(self._ids),
                source_path=source_path,
                archive_id=archive_id,
                created_at=ensure_utc(created_at),
            )
            self._records[record.id] = record
            return record

    async def list_for_source(
        self,
        source_path: str,
        *,
        created_before: Optional[datetime] = None,
    ) -> List[ArchiveRecord]:
        cutoff = ensure_utc(created_before) if created_before is not None else None
        async with self._lock:
            matches = [
                r
                for r in self._records.values()
                if r.source_path == source_path and (cutoff is None or r.created_at < cutoff)
            ]
        return sorted(matches, key=lambda r: (r.created_at, r.id), reverse=True)

    async def delete(self, record: ArchiveRecord) -> bool:
        async with self._lock:
            return self._records.pop(record.id, None) is not None
