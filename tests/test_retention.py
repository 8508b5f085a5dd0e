"""Tests for retention planning and eviction."""

import os
import uuid
from datetime import datetime, timedelta, timezone

from backend.services.archive.archiver import Archiver
from backend.services.archive.errors import StoreError
from backend.services.archive.retention import RetentionManager, RetentionPolicy, plan_eviction
from backend.services.archive.store import MemoryArchiveStore
from backend.services.archive.types import ArchiveRecord, archive_path


NOW = datetime(2026, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


def _record(record_id: int, hours_old: float, source: str = "/data/a") -> ArchiveRecord:
    return ArchiveRecord(
        id=record_id,
        source_path=source,
        archive_id=str(uuid.uuid4()),
        created_at=NOW - timedelta(hours=hours_old),
    )


class TestPlanEviction:
    def test_empty(self):
        assert plan_eviction([], RetentionPolicy(max_backups=1), now=NOW) == ([], [])

    def test_no_limits_keeps_everything(self):
        records = [_record(i, i) for i in range(1, 4)]
        keep, evict = plan_eviction(records, RetentionPolicy(), now=NOW)
        assert evict == []
        assert len(keep) == 3

    def test_age_boundary(self):
        old = _record(1, 25)
        young = _record(2, 23)

        keep, evict = plan_eviction([old, young], RetentionPolicy(max_age=timedelta(hours=24)), now=NOW)

        assert evict == [old]
        assert keep == [young]

    def test_exactly_at_cutoff_is_kept(self):
        edge = _record(1, 24)
        _, evict = plan_eviction([edge], RetentionPolicy(max_age=timedelta(hours=24)), now=NOW)
        assert evict == []

    def test_count_boundary(self):
        records = [_record(i, hours_old=i) for i in range(1, 6)]

        keep, evict = plan_eviction(records, RetentionPolicy(max_backups=3), now=NOW)

        assert [r.id for r in keep] == [1, 2, 3]
        assert [r.id for r in evict] == [5, 4]

    def test_count_applies_regardless_of_age(self):
        records = [_record(i, hours_old=i) for i in range(1, 6)]

        _, evict = plan_eviction(
            records, RetentionPolicy(max_age=timedelta(days=365), max_backups=3), now=NOW
        )

        assert sorted(r.id for r in evict) == [4, 5]

    def test_union_of_policies(self):
        records = [_record(1, 1), _record(2, 2), _record(3, 50)]

        keep, evict = plan_eviction(
            records, RetentionPolicy(max_age=timedelta(hours=24), max_backups=2), now=NOW
        )

        assert [r.id for r in keep] == [1, 2]
        assert [r.id for r in evict] == [3]

        keep, evict = plan_eviction(
            records, RetentionPolicy(max_age=timedelta(hours=24), max_backups=1), now=NOW
        )
        assert [r.id for r in keep] == [1]
        assert [r.id for r in evict] == [3, 2]


class FlakyDeleteStore(MemoryArchiveStore):
    def __init__(self, fail_ids):
        super().__init__()
        self.fail_ids = set(fail_ids)

    async def delete(self, record):
        if record.id in self.fail_ids:
            raise StoreError("locked")
        return await super().delete(record)


class RecordingStore(MemoryArchiveStore):
    def __init__(self):
        super().__init__()
        self.cutoffs = []

    async def list_for_source(self, source_path, *, created_before=None):
        self.cutoffs.append(created_before)
        return await super().list_for_source(source_path, created_before=created_before)


async def _seed(store, spec, hours_old_list):
    """Create real archive files plus records with chosen ages."""
    source = str(spec.input_path.resolve())
    records = []
    for hours_old in hours_old_list:
        record = await store.insert(
            source_path=source,
            archive_id=str(uuid.uuid4()),
            created_at=NOW - timedelta(hours=hours_old),
        )
        archive_path(spec.output_path, record).write_bytes(b"PK\x05\x06" + b"\x00" * 18)
        records.append(record)
    return records


class TestRetentionManager:
    async def test_evicts_files_then_records(self, make_spec, memory_store):
        spec = make_spec(max_backups=2)
        records = await _seed(memory_store, spec, [1, 2, 3, 4])

        result = await RetentionManager(memory_store).evict(spec, now=NOW)

        assert result.ok
        assert {r.id for r in result.evicted} == {records[2].id, records[3].id}
        remaining = await memory_store.list_for_source(records[0].source_path)
        assert [r.id for r in remaining] == [records[0].id, records[1].id]
        for record in records[:2]:
            assert archive_path(spec.output_path, record).exists()
        for record in records[2:]:
            assert not archive_path(spec.output_path, record).exists()

    async def test_age_policy(self, make_spec, memory_store):
        spec = make_spec(max_age="24h")
        old, young = await _seed(memory_store, spec, [25, 23])

        result = await RetentionManager(memory_store).evict(spec, now=NOW)

        assert result.evicted == [old]
        assert archive_path(spec.output_path, young).exists()

    async def test_age_only_queries_store_with_cutoff(self, make_spec):
        store = RecordingStore()
        spec = make_spec(max_age="24h")
        old, young = await _seed(store, spec, [25, 23])

        result = await RetentionManager(store).evict(spec, now=NOW)

        assert store.cutoffs == [NOW - timedelta(hours=24)]
        assert result.evicted == [old]
        assert await store.list_for_source(young.source_path) == [young]

    async def test_count_policy_lists_every_record(self, make_spec):
        store = RecordingStore()
        spec = make_spec(max_backups=1, max_age="24h")
        await _seed(store, spec, [1, 2])

        result = await RetentionManager(store).evict(spec, now=NOW)

        assert store.cutoffs == [None]
        assert len(result.evicted) == 1

    async def test_second_run_removes_nothing(self, make_spec, memory_store):
        spec = make_spec(max_backups=1, max_age="24h")
        await _seed(memory_store, spec, [1, 30, 40])
        manager = RetentionManager(memory_store)

        first = await manager.evict(spec, now=NOW)
        second = await manager.evict(spec, now=NOW)

        assert len(first.evicted) == 2
        assert second.evicted == []
        assert second.unresolved == []

    async def test_missing_file_still_removes_record(self, make_spec, memory_store):
        spec = make_spec(max_backups=1)
        keep, gone, stale = await _seed(memory_store, spec, [1, 2, 3])
        archive_path(spec.output_path, gone).unlink()

        result = await RetentionManager(memory_store).evict(spec, now=NOW)

        assert result.ok
        assert result.missing == [gone]
        assert {r.id for r in result.evicted} == {gone.id, stale.id}
        assert not archive_path(spec.output_path, stale).exists()
        assert [r.id for r in await memory_store.list_for_source(keep.source_path)] == [keep.id]

    async def test_io_failure_is_partial_not_fatal(self, make_spec, memory_store):
        spec = make_spec(max_backups=1)
        keep, blocked, stale = await _seed(memory_store, spec, [1, 2, 3])
        # A directory where the archive file should be cannot be removed with os.remove.
        blocked_path = archive_path(spec.output_path, blocked)
        blocked_path.unlink()
        blocked_path.mkdir()

        result = await RetentionManager(memory_store).evict(spec, now=NOW)

        assert not result.ok
        assert [u.record for u in result.unresolved] == [blocked]
        assert result.unresolved[0].kind == "io"
        assert result.evicted == [stale]
        remaining = {r.id for r in await memory_store.list_for_source(keep.source_path)}
        assert remaining == {keep.id, blocked.id}

    async def test_store_failure_is_reported(self, make_spec):
        spec = make_spec(max_backups=1)
        store = FlakyDeleteStore(fail_ids=set())
        keep, older = await _seed(store, spec, [1, 2])
        store.fail_ids = {older.id}

        result = await RetentionManager(store).evict(spec, now=NOW)

        assert [u.kind for u in result.unresolved] == ["store"]
        assert not archive_path(spec.output_path, older).exists()

    async def test_without_limits_does_nothing(self, make_spec, memory_store):
        spec = make_spec()
        records = await _seed(memory_store, spec, [1000, 2000])

        result = await RetentionManager(memory_store).evict(spec, now=NOW)

        assert result.evicted == []
        assert len(await memory_store.list_for_source(records[0].source_path)) == 2

    async def test_scoped_to_source_path(self, make_spec, memory_store, tmp_path):
        spec = make_spec(max_backups=1)
        await _seed(memory_store, spec, [1, 2])
        other = await memory_store.insert(
            source_path=str(tmp_path / "elsewhere"), archive_id=str(uuid.uuid4()), created_at=NOW - timedelta(days=9)
        )

        await RetentionManager(memory_store).evict(spec, now=NOW)

        assert await memory_store.list_for_source(other.source_path) == [other]

    async def test_sql_store_end_to_end(self, make_spec, sql_store):
        spec = make_spec(max_backups=2)
        archiver = Archiver(sql_store)
        created = [await archiver.archive(spec.input_path, spec.output_path) for _ in range(4)]

        result = await RetentionManager(sql_store).evict(spec)

        assert result.ok
        assert len(result.evicted) == 2
        assert len(os.listdir(spec.output_path)) == 2
        remaining = await sql_store.list_for_source(created[0].source_path)
        assert len(remaining) == 2
        for record in remaining:
            assert archive_path(spec.output_path, record).is_file()
