"""
Job State Documents

JobCursor, JobLock and JobProgress are independent keyed-by-job-name
documents. A StateBackend stores them as plain dicts under (kind, job_name);
the Lock Manager, Cursor Store and Progress Tracker own the (de)serialization.
"""
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, Protocol, Tuple

from nutribatch.core.utils import from_iso, to_iso

LOCK = "lock"
CURSOR = "cursor"
PROGRESS = "progress"


@dataclass
class JobCursor:
    last_key: Optional[str] = None
    finished: bool = False

    def to_doc(self) -> Dict[str, Any]:
        return {"last_key": self.last_key, "finished": self.finished}

    @classmethod
    def from_doc(cls, doc: Optional[Dict[str, Any]]) -> "JobCursor":
        if not doc:
            return cls()
        return cls(last_key=doc.get("last_key"), finished=bool(doc.get("finished", False)))


@dataclass
class JobLock:
    locked: bool
    acquired_at: datetime
    owner_token: str

    def age_seconds(self, now: datetime) -> float:
        return (now - self.acquired_at).total_seconds()

    def to_doc(self) -> Dict[str, Any]:
        return {
            "locked": self.locked,
            "acquired_at": to_iso(self.acquired_at),
            "owner_token": self.owner_token,
        }

    @classmethod
    def from_doc(cls, doc: Dict[str, Any]) -> "JobLock":
        return cls(
            locked=bool(doc.get("locked", False)),
            acquired_at=from_iso(doc.get("acquired_at")),
            owner_token=doc.get("owner_token") or "",
        )


@dataclass
class JobProgress:
    total_processed: int = 0
    total_updated: int = 0
    total_failed: int = 0
    last_update: Optional[datetime] = None

    def to_doc(self) -> Dict[str, Any]:
        return {
            "total_processed": self.total_processed,
            "total_updated": self.total_updated,
            "total_failed": self.total_failed,
            "last_update": to_iso(self.last_update),
        }

    @classmethod
    def from_doc(cls, doc: Optional[Dict[str, Any]]) -> "JobProgress":
        if not doc:
            return cls()
        return cls(
            total_processed=int(doc.get("total_processed") or 0),
            total_updated=int(doc.get("total_updated") or 0),
            total_failed=int(doc.get("total_failed") or 0),
            last_update=from_iso(doc.get("last_update")),
        )


class StateBackend(Protocol):
    """
    Keyed document storage for engine state.

    Implementations must let I/O errors propagate (wrapped in
    StateStoreError); a failed read is never reported as "absent".
    """

    async def get(self, kind: str, job_name: str) -> Optional[Dict[str, Any]]:
        ...

    async def put(self, kind: str, job_name: str, data: Dict[str, Any]) -> None:
        ...

    async def delete(self, kind: str, job_name: str) -> None:
        ...


class InMemoryStateBackend:
    """Dict-backed StateBackend for tests and one-off scripts."""

    def __init__(self):
        self._docs: Dict[Tuple[str, str], Dict[str, Any]] = {}

    async def get(self, kind: str, job_name: str) -> Optional[Dict[str, Any]]:
        doc = self._docs.get((kind, job_name))
        return dict(doc) if doc is not None else None

    async def put(self, kind: str, job_name: str, data: Dict[str, Any]) -> None:
        self._docs[(kind, job_name)] = dict(data)

    async def delete(self, kind: str, job_name: str) -> None:
        self._docs.pop((kind, job_name), None)
