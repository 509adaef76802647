"""
Job Lock Manager

Mutual-exclusion flag with a staleness timeout, one per job name.

A lock older than the job's TTL is assumed to belong to a run that crashed
(container killed mid-drain) and is force-released by the next caller that
looks at it.

KNOWN RELAXATION: acquisition is read-then-write. Two processes checking at
the same instant can both see "no lock" and both write one. Production runs
one scheduler per job, so this covers the real case (the scheduler firing
while a manual drain is in progress). A store-native create-if-absent write
would make acquisition atomic.
"""
import logging
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Optional
from uuid import uuid4

from nutribatch.core.exceptions import JobLockedError
from nutribatch.engine.clock import Clock
from nutribatch.engine.state import LOCK, JobLock, StateBackend

logger = logging.getLogger(__name__)


def new_owner_token(prefix: str = "run") -> str:
    """Opaque token identifying the acquiring run."""
    return f"{prefix}_{uuid4().hex[:12]}"


class LockManager:
    def __init__(self, backend: StateBackend, clock: Clock):
        self._backend = backend
        self._clock = clock

    async def peek(self, job_name: str) -> Optional[JobLock]:
        """Return the stored lock without staleness handling."""
        doc = await self._backend.get(LOCK, job_name)
        if not doc:
            return None
        return JobLock.from_doc(doc)

    async def is_active(self, job_name: str, ttl: timedelta) -> bool:
        """
        True only if a lock exists and is younger than ttl.

        Side effect: a stale lock is deleted and False is returned.
        """
        lock = await self.peek(job_name)
        if lock is None:
            return False

        age = lock.age_seconds(self._clock.now())
        if age >= ttl.total_seconds():
            logger.warning(
                f"[{job_name}] Clearing stale lock held by {lock.owner_token} "
                f"({age / 60:.1f} min old, TTL {ttl.total_seconds() / 60:.0f} min)"
            )
            await self.release(job_name)
            return False

        return lock.locked

    async def acquire(self, job_name: str, ttl: timedelta, owner_token: Optional[str] = None) -> bool:
        """
        Write a fresh lock if no active lock exists.

        Returns False when another run holds an active lock.
        """
        if await self.is_active(job_name, ttl):
            return False

        lock = JobLock(
            locked=True,
            acquired_at=self._clock.now(),
            owner_token=owner_token or new_owner_token(),
        )
        await self._backend.put(LOCK, job_name, lock.to_doc())
        logger.info(f"[{job_name}] Lock acquired ({lock.owner_token})")
        return True

    async def release(self, job_name: str, owner_token: Optional[str] = None) -> bool:
        """
        Delete the lock. Releasing an absent lock is not an error.

        With owner_token, the lock is only deleted if that run still owns it;
        a lock taken over by another run after a stale clear is left alone.
        Returns False when the release was skipped for that reason.
        """
        if owner_token is not None:
            current = await self.peek(job_name)
            if current is not None and current.owner_token != owner_token:
                logger.warning(
                    f"[{job_name}] Lock now owned by {current.owner_token}, "
                    f"not releasing on behalf of {owner_token}"
                )
                return False

        await self._backend.delete(LOCK, job_name)
        logger.info(f"[{job_name}] Lock released")
        return True

    async def refresh(self, job_name: str, owner_token: str) -> bool:
        """
        Restamp acquired_at on a lock this run still owns.

        Returns False if the lock is gone or belongs to another run.
        """
        current = await self.peek(job_name)
        if current is None or not current.locked or current.owner_token != owner_token:
            return False

        current.acquired_at = self._clock.now()
        await self._backend.put(LOCK, job_name, current.to_doc())
        return True

    @asynccontextmanager
    async def hold(self, job_name: str, ttl: timedelta, owner_token: Optional[str] = None):
        """
        Scoped acquisition for drains.

        Raises JobLockedError if the lock is held; otherwise the lock is
        released on every exit path, including exceptions and cancellation,
        unless another run has taken it over in the meantime.
        """
        token = owner_token or new_owner_token("drain")
        if not await self.acquire(job_name, ttl, owner_token=token):
            current = await self.peek(job_name)
            raise JobLockedError(job_name, owner_token=current.owner_token if current else None)
        try:
            yield token
        finally:
            await self.release(job_name, owner_token=token)
