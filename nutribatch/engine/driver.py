"""
Batch Driver

Runs one job definition through its state machine:

    LOCK_CHECK -> SCANNING -> FILTERING -> PROCESSING -> ADVANCING -> DONE
         |                                                    |
         +--> LOCKED_OUT                 (collection end) REWOUND

Two entry points:
- run_single_step: one page, bounded work, for scheduled triggers with a
  short time budget. Never takes the lock; exits as LOCKED_OUT when another
  run holds it.
- run_drain: repeated steps under the job lock until the collection is
  exhausted. Refuses to start while the lock is held.

Per-item transform failures are contained (failure fields written, cursor
still advances). Store failures and configuration errors abort the
invocation without moving the cursor.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from nutribatch.core.utils import to_iso
from nutribatch.engine.clock import Clock, SystemClock
from nutribatch.engine.cursor_store import CursorStore
from nutribatch.engine.definition import JobDefinition
from nutribatch.engine.eligibility import select_eligible
from nutribatch.engine.lock_manager import LockManager, new_owner_token
from nutribatch.engine.progress import ProgressTracker
from nutribatch.engine.records import TargetRecord
from nutribatch.engine.scanner import CollectionScanner
from nutribatch.engine.state import JobProgress, StateBackend
from nutribatch.engine.transformer import RetryingTransformer

logger = logging.getLogger(__name__)

PAUSE_OWNER_PREFIX = "admin_pause"


class StepState(str, Enum):
    LOCK_CHECK = "lock_check"
    SCANNING = "scanning"
    FILTERING = "filtering"
    PROCESSING = "processing"
    ADVANCING = "advancing"
    DONE = "done"
    REWOUND = "rewound"
    LOCKED_OUT = "locked_out"


@dataclass
class StepSummary:
    processed: int = 0
    updated: int = 0
    failed: int = 0
    has_more: bool = False
    locked_out: bool = False
    scanned: int = 0
    state: StepState = StepState.DONE
    failed_keys: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "processed": self.processed,
            "updated": self.updated,
            "failed": self.failed,
            "has_more": self.has_more,
            "locked_out": self.locked_out,
            "scanned": self.scanned,
            "state": self.state.value,
            "failed_keys": list(self.failed_keys),
        }


@dataclass
class DrainSummary:
    processed_total: int = 0
    updated_total: int = 0
    failed_total: int = 0
    pages: int = 0
    lock_lost: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "processed_total": self.processed_total,
            "updated_total": self.updated_total,
            "failed_total": self.failed_total,
            "pages": self.pages,
            "lock_lost": self.lock_lost,
        }


@dataclass
class JobStatus:
    job_name: str
    is_locked: bool
    cursor_finished: bool
    last_key: Optional[str]
    progress: JobProgress
    lock_owner: Optional[str] = None
    lock_acquired_at: Optional[datetime] = None

    @property
    def is_paused(self) -> bool:
        return self.is_locked and (self.lock_owner or "").startswith(PAUSE_OWNER_PREFIX)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "job_name": self.job_name,
            "is_locked": self.is_locked,
            "is_paused": self.is_paused,
            "lock_owner": self.lock_owner,
            "lock_acquired_at": to_iso(self.lock_acquired_at),
            "cursor": {
                "last_key": self.last_key,
                "finished": self.cursor_finished,
            },
            "progress": {
                "total_processed": self.progress.total_processed,
                "total_updated": self.progress.total_updated,
                "total_failed": self.progress.total_failed,
                "last_update": to_iso(self.progress.last_update),
            },
        }


class BatchDriver:
    """
    Stateless between calls: every invocation re-reads lock, cursor and
    progress from the state backend.
    """

    def __init__(self, backend: StateBackend, clock: Optional[Clock] = None):
        self.clock = clock or SystemClock()
        self.locks = LockManager(backend, self.clock)
        self.cursors = CursorStore(backend)
        self.progress = ProgressTracker(backend, self.clock)

    def _transformer(self, job: JobDefinition) -> RetryingTransformer:
        return RetryingTransformer(
            job.apply,
            max_attempts=job.max_attempts,
            backoff_base_seconds=job.backoff_base_seconds,
            clock=self.clock,
            name=job.name,
        )

    async def _process(self, job: JobDefinition, candidates: List[TargetRecord], summary: StepSummary) -> None:
        """Transform candidates in order, writing success or failure patches."""
        transformer = self._transformer(job)

        for index, record in enumerate(candidates):
            if index > 0 and job.item_pause_seconds > 0:
                await self.clock.sleep(job.item_pause_seconds)

            outcome = await transformer.transform(record)
            summary.processed += 1

            if outcome.ok:
                await job.store.patch(record.key, outcome.patch)
                summary.updated += 1
                logger.info(f"[{job.name}] Updated {record.key}")
            else:
                await job.store.patch(record.key, job.failure_patch(record, outcome.error, self.clock.now()))
                summary.failed += 1
                summary.failed_keys.append(record.key)
                logger.warning(f"[{job.name}] Marked {record.key} as failed: {outcome.error.message}")

    async def _step(self, job: JobDefinition) -> StepSummary:
        """One page of work. Caller is responsible for lock policy."""
        summary = StepSummary(state=StepState.SCANNING)
        job.check_configuration()

        page = await CollectionScanner(job.store, self.cursors).next_page(job.name, job.page_size)
        summary.scanned = len(page)

        if not page:
            await self._rewind(job)
            summary.state = StepState.REWOUND
            return summary

        summary.state = StepState.FILTERING
        eligible = select_eligible(page, job.is_eligible)
        candidates = eligible[:job.batch_quota]
        truncated = len(eligible) > len(candidates)

        logger.info(
            f"[{job.name}] Scanned {len(page)} records, {len(eligible)} eligible, "
            f"processing {len(candidates)}"
        )

        summary.state = StepState.PROCESSING
        await self._process(job, candidates, summary)

        summary.state = StepState.ADVANCING
        # Quota-truncated pages resume after the last processed candidate so
        # the remaining eligible records on this page are not skipped.
        last_key = candidates[-1].key if truncated else page[-1].key
        finished = len(page) < job.page_size and not truncated

        if finished:
            await self._record(job, summary)
            await self._rewind(job)
            summary.state = StepState.REWOUND
            return summary

        await self.cursors.advance(job.name, last_key, finished=False)
        totals = await self._record(job, summary)
        logger.info(
            f"[{job.name}] Step complete: processed={summary.processed}, updated={summary.updated}, "
            f"failed={summary.failed}, cursor={last_key} "
            f"(totals: {totals.total_processed} processed, {totals.total_updated} updated)"
        )
        summary.has_more = True
        summary.state = StepState.DONE
        return summary

    async def _record(self, job: JobDefinition, summary: StepSummary) -> JobProgress:
        return await self.progress.record(
            job.name,
            processed=summary.processed,
            updated=summary.updated,
            failed=summary.failed,
        )

    async def _rewind(self, job: JobDefinition) -> None:
        """End of collection: mark the pass finished and clear the counters."""
        progress = await self.progress.read(job.name)
        await self.cursors.advance(job.name, None, finished=True)
        await self.progress.reset(job.name)
        logger.info(
            f"[{job.name}] Reached end of collection. Pass totals: "
            f"{progress.total_processed} processed, {progress.total_updated} updated, "
            f"{progress.total_failed} failed"
        )

    async def run_single_step(self, job: JobDefinition) -> StepSummary:
        if await self.locks.is_active(job.name, job.lock_ttl):
            logger.info(f"[{job.name}] Job is locked by another run, skipping")
            cursor = await self.cursors.read(job.name)
            return StepSummary(
                has_more=not cursor.finished,
                locked_out=True,
                state=StepState.LOCKED_OUT,
            )
        return await self._step(job)

    async def run_drain(self, job: JobDefinition, max_pages: Optional[int] = None) -> DrainSummary:
        """
        Loop steps until the collection is exhausted (or max_pages is hit).

        Raises JobLockedError if the job is already running or paused. The lock
        is restamped before every page so a long drain never looks stale, and
        the drain stops if another run took the lock over (stale clear, then
        pause or resume). The lock is released on every exit path.
        """
        drain = DrainSummary()

        async with self.locks.hold(job.name, job.lock_ttl, owner_token=new_owner_token("drain")) as token:
            logger.info(f"[{job.name}] Starting drain")
            while True:
                if not await self.locks.refresh(job.name, token):
                    drain.lock_lost = True
                    logger.warning(f"[{job.name}] Drain lost its lock after {drain.pages} pages, stopping")
                    break

                step = await self._step(job)
                drain.pages += 1
                drain.processed_total += step.processed
                drain.updated_total += step.updated
                drain.failed_total += step.failed

                if not step.has_more:
                    break
                if max_pages is not None and drain.pages >= max_pages:
                    logger.info(f"[{job.name}] Drain stopped after {drain.pages} pages (limit reached)")
                    break

                await self.clock.sleep(job.page_pause_seconds)

        logger.info(
            f"[{job.name}] Drain complete: {drain.pages} pages, {drain.processed_total} processed, "
            f"{drain.updated_total} updated, {drain.failed_total} failed"
        )
        return drain

    async def run_sample(self, job: JobDefinition, limit: int) -> StepSummary:
        """
        Process up to `limit` eligible records from the start of the
        collection without touching the cursor or progress counters.
        """
        if limit < 1:
            raise ValueError("limit must be positive")

        if await self.locks.is_active(job.name, job.lock_ttl):
            logger.info(f"[{job.name}] Job is locked, sample run skipped")
            return StepSummary(locked_out=True, state=StepState.LOCKED_OUT)

        job.check_configuration()
        summary = StepSummary(state=StepState.PROCESSING)
        after_key: Optional[str] = None

        while summary.processed < limit:
            page = await job.store.get_page(after_key, job.page_size)
            summary.scanned += len(page)
            if not page:
                break

            eligible = select_eligible(page, job.is_eligible)
            candidates = eligible[:limit - summary.processed]
            await self._process(job, candidates, summary)

            if len(candidates) < len(eligible):
                summary.has_more = True
                break
            if len(page) < job.page_size:
                break
            after_key = page[-1].key
        else:
            summary.has_more = True

        summary.state = StepState.DONE
        logger.info(
            f"[{job.name}] Sample run complete: processed={summary.processed}, "
            f"updated={summary.updated}, failed={summary.failed}"
        )
        return summary

    async def inspect(self, job: JobDefinition, sample_size: int = 10) -> Dict[str, Any]:
        """Read-only look at the first records of the collection."""
        page = await job.store.get_page(None, sample_size)
        records = []
        for record in page:
            entry = {"key": record.key, "eligible": bool(job.is_eligible(record))}
            if job.describe is not None:
                entry.update(job.describe(record))
            records.append(entry)

        return {
            "job_name": job.name,
            "sample_size": sample_size,
            "scanned": len(page),
            "eligible": sum(1 for r in records if r["eligible"]),
            "records": records,
        }

    async def status(self, job: JobDefinition) -> JobStatus:
        is_locked = await self.locks.is_active(job.name, job.lock_ttl)
        lock = await self.locks.peek(job.name) if is_locked else None
        cursor = await self.cursors.read(job.name)
        progress = await self.progress.read(job.name)
        return JobStatus(
            job_name=job.name,
            is_locked=is_locked,
            cursor_finished=cursor.finished,
            last_key=cursor.last_key,
            progress=progress,
            lock_owner=lock.owner_token if lock else None,
            lock_acquired_at=lock.acquired_at if lock else None,
        )

    async def reset(self, job: JobDefinition) -> None:
        """Restart from the beginning of the collection with zeroed counters."""
        await self.cursors.reset(job.name)
        await self.progress.reset(job.name)
        logger.warning(f"[{job.name}] Cursor and progress reset by operator")

    async def pause(self, job: JobDefinition) -> bool:
        """
        Hold the lock so scheduled steps exit as locked out.

        A pause lasts at most one lock TTL. Returns False if a run already
        holds the lock.
        """
        paused = await self.locks.acquire(job.name, job.lock_ttl, owner_token=new_owner_token(PAUSE_OWNER_PREFIX))
        if paused:
            logger.warning(f"[{job.name}] Paused by operator")
        return paused

    async def resume(self, job: JobDefinition) -> None:
        await self.locks.release(job.name)
        logger.warning(f"[{job.name}] Resumed by operator")
