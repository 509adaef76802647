"""
Batch Engine

Name-addressed entry point used by the scheduler, the admin routes and the
cron script. Holds the registered job definitions and one BatchDriver over a
shared state backend; all per-job state is keyed by job name.
"""
import logging
from typing import Any, Dict, Iterable, List, Optional

from nutribatch.core.exceptions import ConfigurationError, UnknownJobError
from nutribatch.engine.clock import Clock
from nutribatch.engine.definition import JobDefinition
from nutribatch.engine.driver import BatchDriver, DrainSummary, JobStatus, StepSummary
from nutribatch.engine.state import StateBackend

logger = logging.getLogger(__name__)


class BatchEngine:
    def __init__(
        self,
        state_backend: StateBackend,
        jobs: Iterable[JobDefinition] = (),
        clock: Optional[Clock] = None,
    ):
        self.driver = BatchDriver(state_backend, clock)
        self._jobs: Dict[str, JobDefinition] = {}
        for job in jobs:
            self.register(job)

    def register(self, job: JobDefinition) -> None:
        if job.name in self._jobs:
            raise ConfigurationError(f"Job already registered: {job.name}")
        self._jobs[job.name] = job

    def job(self, name: str) -> JobDefinition:
        try:
            return self._jobs[name]
        except KeyError:
            raise UnknownJobError(name, available=self.job_names())

    def job_names(self) -> List[str]:
        return sorted(self._jobs)

    async def run_single_step(self, name: str) -> StepSummary:
        return await self.driver.run_single_step(self.job(name))

    async def run_drain(self, name: str, max_pages: Optional[int] = None) -> DrainSummary:
        return await self.driver.run_drain(self.job(name), max_pages=max_pages)

    async def run_sample(self, name: str, limit: int) -> StepSummary:
        return await self.driver.run_sample(self.job(name), limit)

    async def inspect(self, name: str, sample_size: int = 10) -> Dict[str, Any]:
        return await self.driver.inspect(self.job(name), sample_size=sample_size)

    async def status(self, name: str) -> JobStatus:
        return await self.driver.status(self.job(name))

    async def reset(self, name: str) -> None:
        await self.driver.reset(self.job(name))

    async def pause(self, name: str) -> bool:
        return await self.driver.pause(self.job(name))

    async def resume(self, name: str) -> None:
        await self.driver.resume(self.job(name))

    async def describe_jobs(self) -> List[Dict[str, Any]]:
        """Registered jobs with their configuration and current status."""
        jobs = []
        for name in self.job_names():
            job = self._jobs[name]
            status = await self.driver.status(job)
            jobs.append({
                "name": name,
                "description": job.description,
                "page_size": job.page_size,
                "batch_quota": job.batch_quota,
                "lock_ttl_minutes": job.lock_ttl.total_seconds() / 60,
                "status": status.to_dict(),
            })
        return jobs
