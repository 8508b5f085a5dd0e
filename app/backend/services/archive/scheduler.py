"""Cron-driven scheduler for directory jobs.

The scheduler keeps one entry per configured directory and evaluates all of
them on every tick. Each firing runs the directory's job as its own asyncio
task, so directories proceed independently of each other.

Per-directory states:
    IDLE -> RUNNING -> IDLE, and STOPPED once the scheduler shuts down.

A firing that arrives while the directory is RUNNING is dropped, not queued.
Nothing is persisted: after a restart each directory waits for its next fire
time and missed firings are not caught up.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence

from backend.services.archive.config import DirectorySpec
from backend.services.archive.executor import JobExecutor, JobResult
from backend.services.archive.schedule_timing import CronSchedule, parse_cron

logger = logging.getLogger(__name__)


class JobState(str, Enum):
    """Lifecycle state of a directory job."""

    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


@dataclass
class ScheduledDirectory:
    """Scheduler bookkeeping for one directory.

    Attributes:
        spec: Directory configuration.
        schedule: Parsed cron schedule.
        state: Current job state.
        next_run_at: Next fire time (UTC).
        task: In-flight job task while RUNNING.
        last_result: Result of the most recent completed run.
        dropped_firings: Firings skipped because a run was still in progress.
    """

    spec: DirectorySpec
    schedule: CronSchedule
    state: JobState = JobState.IDLE
    next_run_at: Optional[datetime] = None
    task: Optional[asyncio.Task] = None
    last_result: Optional[JobResult] = None
    dropped_firings: int = 0


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobScheduler:
    """Fire directory jobs according to their cron schedules."""

    def __init__(
        self,
        directories: Sequence[DirectorySpec],
        executor: JobExecutor,
        *,
        tick_seconds: float = 1.0,
        clock: Callable[[], datetime] = _utcnow,
    ):
        """Initialize the scheduler.

        Args:
            directories: Validated directory configurations.
            executor: Runs one directory's pipeline.
            tick_seconds: Upper bound on the sleep between schedule evaluations.
            clock: Source of the current UTC time.
        """

        self.executor = executor
        self.tick_seconds = tick_seconds
        self.clock = clock
        self.entries: Dict[str, ScheduledDirectory] = {
            spec.name: ScheduledDirectory(spec=spec, schedule=parse_cron(spec.cron)) for spec in directories
        }
        self._stopping = False
        self._stop_event: Optional[asyncio.Event] = None

    def state(self, name: str) -> JobState:
        """Return the current state of a directory job."""

        return self.entries[name].state

    def fire(self, name: str) -> bool:
        """Start a directory's job unless it is already running.

        Must be called from within the event loop.

        Args:
            name: Directory name.

        Returns:
            bool: True if a run was started, False if the firing was dropped.
        """

        entry = self.entries[name]
        if self._stopping or entry.state is JobState.STOPPED:
            return False

        if entry.state is JobState.RUNNING:
            entry.dropped_firings += 1
            logger.warning("Backup of %s is still running; skipping this firing", name)
            return False

        entry.state = JobState.RUNNING
        entry.task = asyncio.create_task(self._run_entry(entry), name=f"archive-job-{name}")
        return True

    async def _run_entry(self, entry: ScheduledDirectory) -> None:
        try:
            entry.last_result = await self.executor.run(entry.spec)
        except Exception:
            logger.exception("Job for %s crashed", entry.spec.name)
        finally:
            entry.task = None
            entry.state = JobState.STOPPED if self._stopping else JobState.IDLE

    def tick(self, now: Optional[datetime] = None) -> List[str]:
        """Fire every directory whose next fire time has passed.

        Args:
            now: Override current time.

        Returns:
            List[str]: Names of directories whose job was started.
        """

        now = now or self.clock()
        started: List[str] = []

        for name, entry in self.entries.items():
            if entry.next_run_at is None:
                entry.next_run_at = entry.schedule.next_after(now)
                continue

            if entry.next_run_at > now:
                continue

            if self.fire(name):
                started.append(name)
            # Missed firings collapse into one; resume from the next future slot.
            entry.next_run_at = entry.schedule.next_after(now)

        return started

    def _seconds_until_next(self, now: datetime) -> float:
        upcoming = [e.next_run_at for e in self.entries.values() if e.next_run_at is not None]
        if not upcoming:
            return self.tick_seconds
        delta = (min(upcoming) - now).total_seconds()
        return max(0.0, min(self.tick_seconds, delta))

    async def run_forever(self) -> None:
        """Run the scheduling loop until `request_stop()` or `stop()` is called.

        In-flight jobs are drained before returning.
        """

        if self._stop_event is None:
            self._stop_event = asyncio.Event()
        if self._stopping:
            self._stop_event.set()

        now = self.clock()
        for name, entry in self.entries.items():
            entry.next_run_at = entry.schedule.next_after(now)
            logger.info("Scheduled %s (cron=%r), next run at %s", name, entry.spec.cron, entry.next_run_at.isoformat())

        while not self._stop_event.is_set():
            now = self.clock()
            self.tick(now)
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._seconds_until_next(self.clock()))
            except asyncio.TimeoutError:
                pass

        await self.drain()

    def request_stop(self) -> None:
        """Stop accepting firings; `run_forever` drains and returns."""

        if not self._stopping:
            logger.info("Scheduler stopping")
        self._stopping = True
        if self._stop_event is not None:
            self._stop_event.set()

    async def stop(self) -> None:
        """Stop the scheduler and wait for running jobs to finish."""

        self.request_stop()
        await self.drain()

    async def drain(self) -> None:
        """Wait for in-flight jobs, then mark every directory STOPPED."""

        tasks = [e.task for e in self.entries.values() if e.task is not None]
        if tasks:
            logger.info("Waiting for %d running job(s) to finish", len(tasks))
            await asyncio.gather(*tasks, return_exceptions=True)

        for entry in self.entries.values():
            entry.state = JobState.STOPPED

    async def run_once(self) -> List[JobResult]:
        """Run every directory's job once, concurrently, and wait for all of them.

        Returns:
            List[JobResult]: Results in configuration order.
        """

        for name in self.entries:
            self.fire(name)

        tasks = [e.task for e in self.entries.values() if e.task is not None]
        await asyncio.gather(*tasks, return_exceptions=True)
        return [e.last_result for e in self.entries.values() if e.last_result is not None]
