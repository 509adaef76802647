"""
Collection Scanner

Reads one ordered page of candidate records starting strictly after the
stored cursor. Every call re-derives its position from persisted state, so a
crashed or time-boxed invocation resumes exactly where the last completed
page left off.
"""
import logging
from typing import List

from nutribatch.engine.cursor_store import CursorStore
from nutribatch.engine.records import RecordStore, TargetRecord

logger = logging.getLogger(__name__)


class CollectionScanner:
    def __init__(self, store: RecordStore, cursors: CursorStore):
        self._store = store
        self._cursors = cursors

    async def next_page(self, job_name: str, page_size: int) -> List[TargetRecord]:
        """
        Up to page_size records in ascending key order.

        A finished cursor starts a fresh pass from the beginning. An empty
        result means the end of the collection was reached on this call.
        """
        if page_size < 1:
            raise ValueError("page_size must be positive")

        cursor = await self._cursors.read(job_name)
        after_key = None if cursor.finished else cursor.last_key

        if after_key:
            logger.info(f"[{job_name}] Continuing scan after key={after_key}")
        else:
            logger.info(f"[{job_name}] Starting scan from the beginning of the collection")

        page = await self._store.get_page(after_key, page_size)
        return page[:page_size]
