"""
Admin API Routes for Batch Jobs

Manual triggers and status for the resumable batch jobs. Every endpoint
requires the admin bearer token. Engine errors are rendered by the
BatchEngineError handler registered in main.py.
"""
import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from pydantic import BaseModel

from nutribatch.api.deps import get_current_admin, get_engine
from nutribatch.core.exceptions import BatchEngineError, JobLockedError
from nutribatch.engine.batch_engine import BatchEngine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/batch-jobs", tags=["Admin - Batch Jobs"])


class ResetJobRequest(BaseModel):
    """Request to reset a job - requires explicit confirmation."""
    confirm: bool = False


@router.get("")
async def list_batch_jobs(
    actor: str = Depends(get_current_admin),
    engine: BatchEngine = Depends(get_engine),
):
    """Registered jobs with configuration, lock, cursor and progress."""
    return {"jobs": await engine.describe_jobs()}


@router.get("/{job_name}/status")
async def get_job_status(
    job_name: str,
    actor: str = Depends(get_current_admin),
    engine: BatchEngine = Depends(get_engine),
):
    job_status = await engine.status(job_name)
    return job_status.to_dict()


@router.post("/{job_name}/step")
async def run_job_step(
    job_name: str,
    actor: str = Depends(get_current_admin),
    engine: BatchEngine = Depends(get_engine),
):
    """Run one bounded step, exactly as a scheduled tick would."""
    logger.info(f"[{job_name}] Manual step triggered by {actor}")
    summary = await engine.run_single_step(job_name)
    return summary.to_dict()


async def _drain_in_background(engine: BatchEngine, job_name: str):
    try:
        await engine.run_drain(job_name)
    except JobLockedError:
        logger.info(f"[{job_name}] Background drain skipped: job is locked")
    except BatchEngineError as e:
        logger.error(f"[{job_name}] Background drain aborted: {e.to_dict()}")


@router.post("/{job_name}/drain", status_code=status.HTTP_202_ACCEPTED)
async def start_job_drain(
    job_name: str,
    background_tasks: BackgroundTasks,
    actor: str = Depends(get_current_admin),
    engine: BatchEngine = Depends(get_engine),
):
    """
    Drain the whole collection in the background.

    Refused with 409 if the job is running or paused. The lock is re-checked
    when the drain actually starts.
    """
    current = await engine.status(job_name)
    if current.is_locked:
        raise JobLockedError(job_name, owner_token=current.lock_owner)

    background_tasks.add_task(_drain_in_background, engine, job_name)
    logger.info(f"[{job_name}] Drain queued by {actor}")
    return {"status": "started", "job_name": job_name}


@router.post("/{job_name}/reset")
async def reset_job(
    job_name: str,
    request: ResetJobRequest,
    actor: str = Depends(get_current_admin),
    engine: BatchEngine = Depends(get_engine),
):
    """
    Rewind the cursor to the start of the collection and clear progress.

    Request body must include: {"confirm": true}
    """
    if not request.confirm:
        current = await engine.status(job_name)
        return {
            "status": "confirmation_required",
            "message": "This will restart the job from the beginning. Send {\"confirm\": true} to proceed.",
            "current": current.to_dict(),
        }

    await engine.reset(job_name)
    logger.warning(f"[{job_name}] Reset by {actor}")
    return {"status": "reset", "job_name": job_name}


@router.post("/{job_name}/pause")
async def pause_job(
    job_name: str,
    actor: str = Depends(get_current_admin),
    engine: BatchEngine = Depends(get_engine),
):
    """Block scheduled steps until resumed (or the lock TTL expires)."""
    if not await engine.pause(job_name):
        current = await engine.status(job_name)
        raise JobLockedError(job_name, owner_token=current.lock_owner)
    return {"status": "paused", "job_name": job_name}


@router.post("/{job_name}/resume")
async def resume_job(
    job_name: str,
    actor: str = Depends(get_current_admin),
    engine: BatchEngine = Depends(get_engine),
):
    await engine.resume(job_name)
    return {"status": "resumed", "job_name": job_name}


@router.post("/{job_name}/sample")
async def run_job_sample(
    job_name: str,
    limit: int = Query(5, ge=1, le=100),
    actor: str = Depends(get_current_admin),
    engine: BatchEngine = Depends(get_engine),
):
    """Process up to `limit` eligible records without moving the cursor."""
    logger.info(f"[{job_name}] Sample run of {limit} triggered by {actor}")
    summary = await engine.run_sample(job_name, limit)
    return summary.to_dict()


@router.get("/{job_name}/inspect")
async def inspect_job(
    job_name: str,
    sample_size: int = Query(10, ge=1, le=200),
    actor: str = Depends(get_current_admin),
    engine: BatchEngine = Depends(get_engine),
):
    return await engine.inspect(job_name, sample_size=sample_size)
