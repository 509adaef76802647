"""
Unit Tests for the Job Lock Manager

Covers acquisition, mutual exclusion, stale lock recovery and scoped holds.
"""
from datetime import timedelta

import pytest

from nutribatch.core.exceptions import JobLockedError, StateStoreError
from nutribatch.engine.lock_manager import LockManager
from nutribatch.engine.state import LOCK, JobLock

TTL = timedelta(minutes=30)


class FailingBackend:
    """StateBackend whose reads fail."""

    async def get(self, kind, job_name):
        raise StateStoreError("connection reset")

    async def put(self, kind, job_name, data):
        raise StateStoreError("connection reset")

    async def delete(self, kind, job_name):
        raise StateStoreError("connection reset")


class TestAcquireRelease:
    @pytest.mark.asyncio
    async def test_acquire_free_lock(self, backend, clock):
        locks = LockManager(backend, clock)
        assert await locks.acquire("meals", TTL) is True
        assert await locks.is_active("meals", TTL) is True

        stored = await locks.peek("meals")
        assert stored.locked is True
        assert stored.acquired_at == clock.now()
        assert stored.owner_token

    @pytest.mark.asyncio
    async def test_second_acquire_is_refused(self, backend, clock):
        """Only one of two consecutive acquirers gets the lock."""
        locks = LockManager(backend, clock)
        first = await locks.acquire("meals", TTL, owner_token="a")
        second = await locks.acquire("meals", TTL, owner_token="b")

        assert (first, second) == (True, False)
        assert (await locks.peek("meals")).owner_token == "a"

    @pytest.mark.asyncio
    async def test_release_is_idempotent(self, backend, clock):
        locks = LockManager(backend, clock)
        await locks.release("meals")
        await locks.acquire("meals", TTL)
        await locks.release("meals")
        await locks.release("meals")
        assert await locks.is_active("meals", TTL) is False

    @pytest.mark.asyncio
    async def test_locks_are_per_job(self, backend, clock):
        locks = LockManager(backend, clock)
        assert await locks.acquire("meals", TTL) is True
        assert await locks.acquire("images", TTL) is True


class TestStaleLocks:
    @pytest.mark.asyncio
    async def test_stale_lock_is_cleared(self, backend, clock):
        """A 40-minute-old lock with a 30-minute TTL is force-released."""
        locks = LockManager(backend, clock)
        await locks.acquire("meals", TTL)
        clock.advance(minutes=40)

        assert await locks.is_active("meals", TTL) is False
        assert await backend.get(LOCK, "meals") is None

    @pytest.mark.asyncio
    async def test_stale_lock_can_be_reacquired(self, backend, clock):
        locks = LockManager(backend, clock)
        await locks.acquire("meals", TTL, owner_token="crashed")
        clock.advance(minutes=40)

        assert await locks.acquire("meals", TTL, owner_token="fresh") is True
        assert (await locks.peek("meals")).owner_token == "fresh"

    @pytest.mark.asyncio
    async def test_young_lock_stays_active(self, backend, clock):
        locks = LockManager(backend, clock)
        await locks.acquire("meals", TTL)
        clock.advance(minutes=29)
        assert await locks.is_active("meals", TTL) is True

    @pytest.mark.asyncio
    async def test_unlocked_document_is_not_active(self, backend, clock):
        await backend.put(LOCK, "meals", JobLock(False, clock.now(), "old").to_doc())
        locks = LockManager(backend, clock)
        assert await locks.is_active("meals", TTL) is False


class TestHold:
    @pytest.mark.asyncio
    async def test_hold_releases_on_exit(self, backend, clock):
        locks = LockManager(backend, clock)
        async with locks.hold("meals", TTL) as token:
            assert (await locks.peek("meals")).owner_token == token
        assert await locks.peek("meals") is None

    @pytest.mark.asyncio
    async def test_hold_releases_on_error(self, backend, clock):
        locks = LockManager(backend, clock)
        with pytest.raises(RuntimeError):
            async with locks.hold("meals", TTL):
                raise RuntimeError("boom")
        assert await locks.peek("meals") is None

    @pytest.mark.asyncio
    async def test_hold_refuses_when_locked(self, backend, clock):
        locks = LockManager(backend, clock)
        await locks.acquire("meals", TTL, owner_token="scheduler")

        with pytest.raises(JobLockedError) as exc_info:
            async with locks.hold("meals", TTL):
                pass

        assert exc_info.value.details["owner_token"] == "scheduler"
        # The existing lock is untouched
        assert (await locks.peek("meals")).owner_token == "scheduler"

    @pytest.mark.asyncio
    async def test_hold_keeps_lock_taken_over_by_another_run(self, backend, clock):
        """A hold outliving its TTL must not delete the lock of whoever took over."""
        locks = LockManager(backend, clock)
        async with locks.hold("meals", TTL, owner_token="drain_1"):
            clock.advance(minutes=31)
            assert await locks.acquire("meals", TTL, owner_token="admin_pause_1") is True

        assert (await locks.peek("meals")).owner_token == "admin_pause_1"


class TestOwnership:
    @pytest.mark.asyncio
    async def test_release_with_wrong_owner_is_skipped(self, backend, clock):
        locks = LockManager(backend, clock)
        await locks.acquire("meals", TTL, owner_token="a")

        assert await locks.release("meals", owner_token="b") is False
        assert (await locks.peek("meals")).owner_token == "a"

        assert await locks.release("meals", owner_token="a") is True
        assert await locks.peek("meals") is None

    @pytest.mark.asyncio
    async def test_refresh_restamps_owned_lock(self, backend, clock):
        locks = LockManager(backend, clock)
        await locks.acquire("meals", TTL, owner_token="a")
        clock.advance(minutes=25)

        assert await locks.refresh("meals", "a") is True
        assert (await locks.peek("meals")).acquired_at == clock.now()

        clock.advance(minutes=25)
        assert await locks.is_active("meals", TTL) is True

    @pytest.mark.asyncio
    async def test_refresh_fails_when_not_owner(self, backend, clock):
        locks = LockManager(backend, clock)
        assert await locks.refresh("meals", "a") is False

        await locks.acquire("meals", TTL, owner_token="b")
        acquired_at = (await locks.peek("meals")).acquired_at
        clock.advance(minutes=5)

        assert await locks.refresh("meals", "a") is False
        assert (await locks.peek("meals")).acquired_at == acquired_at


class TestStoreErrors:
    @pytest.mark.asyncio
    async def test_read_failure_is_not_treated_as_unlocked(self, clock):
        locks = LockManager(FailingBackend(), clock)
        with pytest.raises(StateStoreError):
            await locks.is_active("meals", TTL)
        with pytest.raises(StateStoreError):
            await locks.acquire("meals", TTL)
