"""
Nutrition Batch Engine API

Admin triggers for the batch jobs plus the in-process scheduler.
"""
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

from nutribatch import __version__
from nutribatch.api.routes import batch_jobs
from nutribatch.core.config import settings
from nutribatch.core.database import dispose_engine, get_db_session, init_db
from nutribatch.core.exceptions import (
    BatchEngineError,
    ConfigurationError,
    JobLockedError,
    StoreError,
    UnknownJobError,
)
from nutribatch.jobs.pipeline_scheduler import pipeline_scheduler

logger = logging.getLogger(__name__)

ERROR_STATUS = (
    (UnknownJobError, 404),
    (JobLockedError, 409),
    (ConfigurationError, 503),
    (StoreError, 503),
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables and start the batch scheduler on startup; stop it and close the pool on shutdown."""
    await init_db()

    if settings.BATCH_SCHEDULER_ENABLED:
        await pipeline_scheduler.start()
        logger.info("Batch scheduler ENABLED - jobs will run automatically")
    else:
        logger.info("Batch scheduler DISABLED via config")

    yield

    await pipeline_scheduler.stop()
    await dispose_engine()


app = FastAPI(
    lifespan=lifespan,
    title=settings.APP_NAME,
    version=__version__,
)


@app.exception_handler(BatchEngineError)
async def batch_engine_error_handler(request: Request, exc: BatchEngineError):
    status_code = 500
    for error_type, code in ERROR_STATUS:
        if isinstance(exc, error_type):
            status_code = code
            break
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.to_dict()}")
    return JSONResponse(status_code=status_code, content=exc.to_dict())


app.include_router(batch_jobs.router, prefix="/api")


@app.get("/", tags=["Health"])
async def root():
    return {
        "message": settings.APP_NAME,
        "version": __version__,
        "status": "operational",
    }


@app.get("/health", tags=["Health"])
async def health_check():
    """Database ping; 503 if unreachable."""
    health_status = {
        "status": "healthy",
        "database": "unknown",
        "scheduler": "running" if pipeline_scheduler.running else "stopped",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    try:
        async with get_db_session() as db:
            await db.execute(text("SELECT 1"))
        health_status["database"] = "connected"
    except Exception as e:
        health_status["database"] = f"error: {type(e).__name__}: {str(e)[:100]}"
        health_status["status"] = "unhealthy"
        return JSONResponse(status_code=503, content=health_status)

    return health_status
