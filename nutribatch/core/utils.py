"""
Core Utilities

Shared helpers used across the engine and the jobs.
"""
import time
from datetime import datetime, timezone
from uuid import uuid4
from typing import Optional


def utcnow() -> datetime:
    """
    Return timezone-aware UTC datetime.

    Use this instead of datetime.utcnow() which returns naive datetime.
    """
    return datetime.now(timezone.utc)


def to_iso(value: Optional[datetime]) -> Optional[str]:
    """Serialize a datetime for JSON state documents."""
    if value is None:
        return None
    return value.isoformat()


def from_iso(value: Optional[str]) -> Optional[datetime]:
    """
    Parse a timestamp written by to_iso().

    Naive values (older rows, SQLite round-trips) are treated as UTC.
    """
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


_last_id_ns = 0


def new_record_id() -> str:
    """
    Time-ordered unique identifier for new documents.

    Nanosecond timestamp (fixed-width hex, strictly increasing within the
    process) plus a random suffix, so keys sort in creation order and new
    records land ahead of a running cursor.
    """
    global _last_id_ns
    _last_id_ns = max(time.time_ns(), _last_id_ns + 1)
    return f"{_last_id_ns:016x}{uuid4().hex[:12]}"
