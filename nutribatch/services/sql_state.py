"""
SQL State Backend

Stores lock, cursor and progress documents in batch_job_state, one row per
(kind, job_name). Each call runs in its own short transaction so a state
write is durable as soon as it returns.
"""
import logging
from typing import Any, Dict, Optional

from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from nutribatch.core.database import get_session_factory
from nutribatch.core.exceptions import StateStoreError
from nutribatch.core.utils import utcnow
from nutribatch.models.pipeline import BatchJobState

logger = logging.getLogger(__name__)


class SqlStateBackend:
    def __init__(self, session_factory: Optional[async_sessionmaker] = None):
        self._session_factory = session_factory

    @property
    def session_factory(self) -> async_sessionmaker:
        if self._session_factory is None:
            self._session_factory = get_session_factory()
        return self._session_factory

    async def get(self, kind: str, job_name: str) -> Optional[Dict[str, Any]]:
        try:
            async with self.session_factory() as db:
                row = await db.get(BatchJobState, (kind, job_name))
                if row is None:
                    return None
                return dict(row.data or {})
        except SQLAlchemyError as e:
            logger.error(f"[{job_name}] Failed to read {kind} state: {e}")
            raise StateStoreError(
                f"Failed to read {kind} state for {job_name}",
                details={"kind": kind, "job_name": job_name, "error": str(e)},
            ) from e

    async def put(self, kind: str, job_name: str, data: Dict[str, Any]) -> None:
        try:
            async with self.session_factory() as db:
                row = await db.get(BatchJobState, (kind, job_name))
                if row is None:
                    db.add(BatchJobState(kind=kind, job_name=job_name, data=dict(data)))
                else:
                    row.data = dict(data)
                    row.updated_at = utcnow()
                await db.commit()
        except SQLAlchemyError as e:
            logger.error(f"[{job_name}] Failed to write {kind} state: {e}")
            raise StateStoreError(
                f"Failed to write {kind} state for {job_name}",
                details={"kind": kind, "job_name": job_name, "error": str(e)},
            ) from e

    async def delete(self, kind: str, job_name: str) -> None:
        try:
            async with self.session_factory() as db:
                await db.execute(
                    delete(BatchJobState).where(
                        BatchJobState.kind == kind,
                        BatchJobState.job_name == job_name,
                    )
                )
                await db.commit()
        except SQLAlchemyError as e:
            logger.error(f"[{job_name}] Failed to delete {kind} state: {e}")
            raise StateStoreError(
                f"Failed to delete {kind} state for {job_name}",
                details={"kind": kind, "job_name": job_name, "error": str(e)},
            ) from e
