"""Tests for the cron-driven job scheduler."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from backend.services.archive.executor import STATUS_SUCCESS, JobResult
from backend.services.archive.scheduler import JobScheduler, JobState


T0 = datetime(2026, 3, 1, 10, 0, 0, tzinfo=timezone.utc)


class GatedExecutor:
    """Executor whose runs block until released."""

    def __init__(self):
        self.started = []
        self.active = 0
        self.gate = asyncio.Event()

    async def run(self, spec):
        self.started.append(spec.name)
        self.active += 1
        await self.gate.wait()
        self.active -= 1
        return JobResult(directory=spec.name, status=STATUS_SUCCESS, started_at=T0)


async def _settle():
    for _ in range(5):
        await asyncio.sleep(0)


@pytest.fixture
def executor():
    return GatedExecutor()


@pytest.fixture
def specs(make_spec, tmp_path):
    other_out = tmp_path / "other-out"
    other_out.mkdir()
    return [
        make_spec(name="docs", cron="* * * * * *"),
        make_spec(name="photos", cron="*/10 * * * * *", output=str(other_out)),
    ]


class TestJobScheduler:
    async def test_fire_transitions_idle_running_idle(self, specs, executor):
        scheduler = JobScheduler(specs, executor)
        assert scheduler.state("docs") is JobState.IDLE

        assert scheduler.fire("docs") is True
        assert scheduler.state("docs") is JobState.RUNNING

        executor.gate.set()
        await _settle()

        assert scheduler.state("docs") is JobState.IDLE
        assert scheduler.entries["docs"].last_result.directory == "docs"

    async def test_firing_while_running_is_dropped(self, specs, executor):
        scheduler = JobScheduler(specs, executor)

        assert scheduler.fire("docs") is True
        await _settle()
        assert scheduler.fire("docs") is False
        assert scheduler.fire("docs") is False

        assert executor.started == ["docs"]
        assert scheduler.entries["docs"].dropped_firings == 2

        executor.gate.set()
        await _settle()
        # Dropped firings are not replayed.
        assert executor.started == ["docs"]

    async def test_directories_run_concurrently(self, specs, executor):
        scheduler = JobScheduler(specs, executor)

        scheduler.fire("docs")
        scheduler.fire("photos")
        await _settle()

        assert executor.active == 2
        executor.gate.set()
        await _settle()
        assert executor.active == 0

    async def test_tick_fires_due_entries_without_catch_up(self, specs, executor):
        scheduler = JobScheduler(specs, executor)

        # First tick only computes next fire times.
        assert scheduler.tick(T0) == []
        assert scheduler.entries["docs"].next_run_at == T0 + timedelta(seconds=1)
        assert scheduler.entries["photos"].next_run_at == T0 + timedelta(seconds=10)

        # A long pause: every missed slot collapses into a single firing.
        later = T0 + timedelta(seconds=35)
        assert scheduler.tick(later) == ["docs", "photos"]
        assert scheduler.entries["docs"].next_run_at == later + timedelta(seconds=1)
        assert scheduler.entries["photos"].next_run_at == T0 + timedelta(seconds=40)

        # Still running at the next slot: dropped, schedule advances anyway.
        assert scheduler.tick(later + timedelta(seconds=1)) == []
        assert scheduler.entries["docs"].dropped_firings == 1
        assert scheduler.entries["docs"].next_run_at == later + timedelta(seconds=2)

        executor.gate.set()
        await _settle()
        assert scheduler.tick(later + timedelta(seconds=2)) == ["docs"]
        await _settle()

    async def test_stop_drains_running_jobs(self, specs, executor):
        scheduler = JobScheduler(specs, executor)
        scheduler.fire("docs")
        await _settle()

        stopper = asyncio.create_task(scheduler.stop())
        await _settle()
        assert not stopper.done()
        assert scheduler.fire("photos") is False

        executor.gate.set()
        await stopper

        assert scheduler.entries["docs"].last_result is not None
        assert all(scheduler.state(name) is JobState.STOPPED for name in scheduler.entries)

    async def test_run_forever_fires_and_stops(self, specs, executor):
        executor.gate.set()
        scheduler = JobScheduler(specs, executor, tick_seconds=0.05)

        runner = asyncio.create_task(scheduler.run_forever())
        for _ in range(100):
            await asyncio.sleep(0.05)
            if "docs" in executor.started:
                break
        scheduler.request_stop()
        await asyncio.wait_for(runner, timeout=5)

        assert "docs" in executor.started
        assert all(scheduler.state(name) is JobState.STOPPED for name in scheduler.entries)

    async def test_run_once_returns_all_results(self, specs, executor):
        executor.gate.set()
        scheduler = JobScheduler(specs, executor)

        results = await scheduler.run_once()

        assert [r.directory for r in results] == ["docs", "photos"]
        assert all(scheduler.state(name) is JobState.IDLE for name in scheduler.entries)
