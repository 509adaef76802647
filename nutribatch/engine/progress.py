"""
Progress Tracker

Cumulative counters for observability. Monotonically non-decreasing until the
job completes a full pass or is explicitly reset.
"""
import logging

from nutribatch.engine.clock import Clock
from nutribatch.engine.state import PROGRESS, JobProgress, StateBackend

logger = logging.getLogger(__name__)


class ProgressTracker:
    def __init__(self, backend: StateBackend, clock: Clock):
        self._backend = backend
        self._clock = clock

    async def read(self, job_name: str) -> JobProgress:
        return JobProgress.from_doc(await self._backend.get(PROGRESS, job_name))

    async def record(self, job_name: str, processed: int = 0, updated: int = 0, failed: int = 0) -> JobProgress:
        """Add deltas to the stored totals and return the new totals."""
        if processed < 0 or updated < 0 or failed < 0:
            raise ValueError("Progress deltas must be non-negative")

        progress = await self.read(job_name)
        progress.total_processed += processed
        progress.total_updated += updated
        progress.total_failed += failed
        progress.last_update = self._clock.now()
        await self._backend.put(PROGRESS, job_name, progress.to_doc())
        return progress

    async def reset(self, job_name: str) -> None:
        await self._backend.delete(PROGRESS, job_name)
        logger.info(f"[{job_name}] Progress counters reset")
