"""Database access layer for archive records.

This module provides session-scoped CRUD helpers for the `archive_records`
table. Callers own the session and its lifetime.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from sqlalchemy import delete, select

from models.sql.archive_records import StoredArchive


class ArchiveRecordRepository:
    """Repository for archive record rows."""

    async def create_record(
        self,
        session,
        *,
        source_path: str,
        archive_id: str,
        created_at: datetime,
    ) -> StoredArchive:
        """Insert a record and return it with its assigned id.

        Args:
            session: SQLAlchemy async session.
            source_path: Canonical source directory.
            archive_id: Archive id.
            created_at: Creation timestamp.

        Returns:
            StoredArchive: Persisted row.
        """

        row = StoredArchive(source_path=source_path, archive_id=archive_id, created_at=created_at)
        session.add(row)
        await session.commit()
        await session.refresh(row)
        return row

    async def list_records(
        self,
        session,
        source_path: str,
        *,
        created_before: Optional[datetime] = None,
    ) -> List[StoredArchive]:
        """List a directory's records, newest first.

        Args:
            session: SQLAlchemy async session.
            source_path: Canonical source directory.
            created_before: Only return rows created strictly before this time.

        Returns:
            List[StoredArchive]: Matching rows.
        """

        stmt = select(StoredArchive).where(StoredArchive.source_path == source_path)
        if created_before is not None:
            stmt = stmt.where(StoredArchive.created_at < created_before)
        stmt = stmt.order_by(StoredArchive.created_at.desc(), StoredArchive.id.desc())

        result = await session.execute(stmt)
        return list(result.scalars().all())

    async def delete_record(self, session, record_id: int) -> int:
        """Delete a record by id.

        Returns:
            int: Number of deleted rows (0 when it was already gone).
        """

        result = await session.execute(delete(StoredArchive).where(StoredArchive.id == record_id))
        await session.commit()
        return int(result.rowcount or 0)
