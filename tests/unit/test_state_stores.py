"""
Unit Tests for the Cursor Store, Progress Tracker and state documents
"""
from datetime import datetime, timezone

import pytest

from nutribatch.core.utils import from_iso, new_record_id, to_iso
from nutribatch.engine.cursor_store import CursorStore
from nutribatch.engine.progress import ProgressTracker
from nutribatch.engine.state import CURSOR, LOCK, PROGRESS, JobCursor, JobLock, JobProgress


class TestCursorStore:
    @pytest.mark.asyncio
    async def test_absent_cursor_means_start(self, backend):
        cursor = await CursorStore(backend).read("meals")
        assert cursor == JobCursor(last_key=None, finished=False)

    @pytest.mark.asyncio
    async def test_advance_overwrites(self, backend):
        cursors = CursorStore(backend)
        await cursors.advance("meals", "k010", finished=False)
        await cursors.advance("meals", "k020", finished=False)
        assert await cursors.read("meals") == JobCursor("k020", False)

    @pytest.mark.asyncio
    async def test_reset_restarts_scan(self, backend):
        cursors = CursorStore(backend)
        await cursors.advance("meals", "k010", finished=False)
        await cursors.reset("meals")
        assert await cursors.read("meals") == JobCursor()

    @pytest.mark.asyncio
    async def test_advance_does_not_touch_other_documents(self, backend, clock):
        await backend.put(LOCK, "meals", JobLock(True, clock.now(), "run_1").to_doc())
        await ProgressTracker(backend, clock).record("meals", processed=3, updated=2)

        await CursorStore(backend).advance("meals", "k005", finished=False)

        assert (await backend.get(LOCK, "meals"))["owner_token"] == "run_1"
        assert (await backend.get(PROGRESS, "meals"))["total_processed"] == 3
        assert (await backend.get(CURSOR, "meals"))["last_key"] == "k005"


class TestProgressTracker:
    @pytest.mark.asyncio
    async def test_record_accumulates(self, backend, clock):
        progress = ProgressTracker(backend, clock)
        await progress.record("meals", processed=5, updated=4, failed=1)
        clock.advance(minutes=5)
        totals = await progress.record("meals", processed=3, updated=3)

        assert totals.total_processed == 8
        assert totals.total_updated == 7
        assert totals.total_failed == 1
        assert totals.last_update == clock.now()
        assert await progress.read("meals") == totals

    @pytest.mark.asyncio
    async def test_negative_delta_rejected(self, backend, clock):
        with pytest.raises(ValueError):
            await ProgressTracker(backend, clock).record("meals", processed=-1)

    @pytest.mark.asyncio
    async def test_reset_zeroes_counters(self, backend, clock):
        progress = ProgressTracker(backend, clock)
        await progress.record("meals", processed=5, updated=5)
        await progress.reset("meals")
        assert await progress.read("meals") == JobProgress()


class TestStateDocuments:
    def test_lock_document_keeps_timezone(self):
        acquired = datetime(2025, 3, 1, 8, 30, tzinfo=timezone.utc)
        lock = JobLock.from_doc(JobLock(True, acquired, "run_1").to_doc())
        assert lock.acquired_at == acquired
        assert lock.age_seconds(datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc)) == 1800

    def test_naive_timestamp_treated_as_utc(self):
        assert from_iso("2025-03-01T08:30:00") == datetime(2025, 3, 1, 8, 30, tzinfo=timezone.utc)
        assert to_iso(None) is None
        assert from_iso(None) is None

    def test_record_ids_sort_in_creation_order(self):
        ids = [new_record_id() for _ in range(50)]
        assert ids == sorted(ids)
        assert len(set(ids)) == 50
