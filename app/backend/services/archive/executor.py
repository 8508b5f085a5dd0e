"""Execution of a single directory job.

A job archives the directory and then applies its retention policy. Every
failure is caught here, logged and turned into a failed `JobResult`, so one
broken directory never takes the scheduler or other directories down.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from backend.services.archive.archiver import Archiver
from backend.services.archive.config import DirectorySpec
from backend.services.archive.errors import ArchiverError
from backend.services.archive.retention import EvictionResult, RetentionManager
from backend.services.archive.store import ArchiveStore
from backend.services.archive.types import ArchiveRecord

logger = logging.getLogger(__name__)

STATUS_SUCCESS = "success"
STATUS_FAILED = "failed"
STATUS_SKIPPED = "skipped"


@dataclass
class JobResult:
    """Outcome of one directory job run.

    Attributes:
        directory: Directory name.
        status: success|failed|skipped.
        started_at: Run start.
        finished_at: Run end.
        record: Record of the archive created by this run.
        eviction: Retention outcome.
        error_type: Failure kind (path|io|store|error) when failed.
        error: Error summary when failed or skipped.
    """

    directory: str
    status: str
    started_at: datetime
    finished_at: Optional[datetime] = None
    record: Optional[ArchiveRecord] = None
    eviction: Optional[EvictionResult] = None
    error_type: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == STATUS_SUCCESS


class JobExecutor:
    """Run the archive-then-evict pipeline for a directory."""

    def __init__(self, store: ArchiveStore):
        """Initialize the executor.

        Args:
            store: Metadata store shared by all directories.
        """

        self.store = store
        self.archiver = Archiver(store)
        self.retention = RetentionManager(store)

    async def run(self, spec: DirectorySpec) -> JobResult:
        """Execute the job for one directory.

        Args:
            spec: Directory configuration.

        Returns:
            JobResult: Run outcome. Never raises for archiver failures.
        """

        result = JobResult(directory=spec.name, status=STATUS_FAILED, started_at=datetime.now(timezone.utc))
        logger.info("Starting backup of %s", spec.name)

        try:
            result.record = await self.archiver.archive(spec.input_path, spec.output_path)
            result.eviction = await self.retention.evict(spec)
            result.status = STATUS_SUCCESS
        except ArchiverError as exc:
            result.error_type = exc.kind
            result.error = str(exc)
            logger.error("Backup of %s failed (%s): %s", spec.name, exc.kind, exc)
        except Exception as exc:
            result.error_type = ArchiverError.kind
            result.error = str(exc)
            logger.exception("Backup of %s failed with an unexpected error", spec.name)
        finally:
            result.finished_at = datetime.now(timezone.utc)

        if result.ok:
            logger.info("Backup of %s completed", spec.name)
        return result
