"""
Pipeline Scheduler

Runs one single-step invocation per enabled job on its interval. Each tick
is a short, bounded unit of work; a tick that finds the job locked (drain in
progress, or paused by an operator) exits without doing anything.

Jobs:
- meal_descriptions: every MEAL_DESCRIPTIONS_INTERVAL_MINUTES
- meal_images: every MEAL_IMAGES_INTERVAL_MINUTES
- tag_meals: every TAG_MEALS_INTERVAL_MINUTES
"""
import asyncio
import logging
from typing import Dict, List, Optional

from nutribatch.core.config import settings
from nutribatch.engine.batch_engine import BatchEngine
from nutribatch.engine.driver import StepSummary
from nutribatch.jobs import meal_descriptions, meal_images, tag_meals
from nutribatch.jobs.registry import get_batch_engine

logger = logging.getLogger(__name__)


def default_intervals() -> Dict[str, int]:
    return {
        meal_descriptions.JOB_NAME: settings.MEAL_DESCRIPTIONS_INTERVAL_MINUTES,
        meal_images.JOB_NAME: settings.MEAL_IMAGES_INTERVAL_MINUTES,
        tag_meals.JOB_NAME: settings.TAG_MEALS_INTERVAL_MINUTES,
    }


class PipelineScheduler:
    """
    Main scheduler that runs all batch jobs.

    Call start() to begin background scheduling.
    """

    def __init__(
        self,
        engine: Optional[BatchEngine] = None,
        intervals: Optional[Dict[str, int]] = None,
        initial_delay_seconds: float = 5.0,
    ):
        self._engine = engine
        self._intervals = intervals
        self.initial_delay_seconds = initial_delay_seconds
        self._tasks: List[asyncio.Task] = []
        self._running = False

    @property
    def engine(self) -> BatchEngine:
        if self._engine is None:
            self._engine = get_batch_engine()
        return self._engine

    @property
    def intervals(self) -> Dict[str, int]:
        if self._intervals is None:
            self._intervals = default_intervals()
        return self._intervals

    @property
    def running(self) -> bool:
        return self._running

    async def start(self):
        """Start all scheduled jobs."""
        if self._running:
            logger.info("[SCHEDULER] Pipeline scheduler already running")
            return

        self._running = True
        logger.info("[SCHEDULER] Pipeline scheduler started")

        for name, minutes in self.intervals.items():
            self.engine.job(name)
            self._tasks.append(asyncio.create_task(self._run_job_loop(name, interval_minutes=minutes)))
            logger.info(f"[SCHEDULER]   - {name}: every {minutes} minutes")

    async def stop(self):
        """Stop all scheduled jobs."""
        self._running = False
        for task in self._tasks:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._tasks = []
        logger.info("[SCHEDULER] Pipeline scheduler stopped")

    async def _run_job_loop(self, name: str, interval_minutes: int):
        """Run one single step of a job every interval_minutes."""
        await asyncio.sleep(self.initial_delay_seconds)

        while self._running:
            await self.run_once(name)
            logger.info(f"[SCHEDULER] Next {name} run in {interval_minutes} minutes")
            await asyncio.sleep(interval_minutes * 60)

    async def run_once(self, name: str) -> Optional[StepSummary]:
        """One scheduled tick. Failures are logged; the next tick retries from the stored cursor."""
        try:
            logger.info(f"[SCHEDULER] Running {name}...")
            summary = await self.engine.run_single_step(name)
        except Exception as e:
            logger.error(f"[SCHEDULER] Job {name} failed: {type(e).__name__}: {e}")
            return None

        if summary.locked_out:
            logger.info(f"[SCHEDULER] {name} is locked, skipped this tick")
        else:
            logger.info(
                f"[SCHEDULER] Job {name} completed: processed={summary.processed}, "
                f"updated={summary.updated}, failed={summary.failed}, has_more={summary.has_more}"
            )
        return summary


# Global scheduler instance
pipeline_scheduler = PipelineScheduler()
