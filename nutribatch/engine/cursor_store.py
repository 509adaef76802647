"""
Cursor Store

Persists how far a job's scan has progressed. Writes only the cursor
document; progress counters and the lock live in their own documents.
"""
import logging
from typing import Optional

from nutribatch.engine.state import CURSOR, JobCursor, StateBackend

logger = logging.getLogger(__name__)


class CursorStore:
    def __init__(self, backend: StateBackend):
        self._backend = backend

    async def read(self, job_name: str) -> JobCursor:
        """Stored cursor, or the start of the collection if none exists."""
        return JobCursor.from_doc(await self._backend.get(CURSOR, job_name))

    async def advance(self, job_name: str, last_key: Optional[str], finished: bool) -> None:
        """Unconditional overwrite of the cursor document."""
        await self._backend.put(CURSOR, job_name, JobCursor(last_key=last_key, finished=finished).to_doc())

    async def reset(self, job_name: str) -> None:
        """Restart the scan from the beginning of the collection."""
        await self._backend.put(CURSOR, job_name, JobCursor().to_doc())
        logger.info(f"[{job_name}] Cursor reset to start of collection")
