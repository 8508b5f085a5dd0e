"""Archive metadata models.

Each row records one archive written by the archiver: which directory it was
taken from, its unique archive id, and when it was created. The archive file
path is not stored; it is derived from `(created_at, archive_id)` and the
directory's configured output root.
"""

from __future__ import annotations

from sqlalchemy import Column, DateTime, Integer, String, Text

from models.sql.base import Base


class StoredArchive(Base):
    """A persisted archive record.

    Attributes:
        id (int): Store-assigned primary key.
        source_path (str): Canonical absolute path of the archived directory.
        archive_id (str): UUID identifying the archive.
        created_at (datetime): Archive creation timestamp (UTC).
    """

    __tablename__ = "archive_records"

    id = Column(Integer, primary_key=True, autoincrement=True)

    source_path = Column(Text, nullable=False, index=True)

    archive_id = Column(String(36), nullable=False, unique=True)

    created_at = Column(DateTime(timezone=True), nullable=False, index=True)
