"""
Pytest configuration and fixtures for the batch engine tests.
"""
import os
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import pytest

# Set test environment before importing package modules
os.environ["ENVIRONMENT"] = "development"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["ADMIN_API_TOKEN"] = "test-admin-token-for-unit-tests"
os.environ["BATCH_SCHEDULER_ENABLED"] = "false"
os.environ["OPENAI_API_KEY"] = "sk-test"
os.environ["RECRAFT_API_TOKEN"] = "recraft-test"

from nutribatch.engine.definition import JobDefinition  # noqa: E402
from nutribatch.engine.driver import BatchDriver  # noqa: E402
from nutribatch.engine.records import InMemoryRecordStore, TargetRecord  # noqa: E402
from nutribatch.engine.state import InMemoryStateBackend  # noqa: E402


class FakeClock:
    """Controllable clock; sleep() advances time instead of waiting."""

    def __init__(self, start: Optional[datetime] = None):
        self.current = start or datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)
        self.sleeps: List[float] = []

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current += timedelta(**kwargs)

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.current += timedelta(seconds=seconds)


def enrich_apply(calls: Optional[List[str]] = None, fail_keys=()):
    """apply() that marks a record done, failing every attempt for fail_keys."""

    async def apply(record: TargetRecord) -> Dict[str, Any]:
        if calls is not None:
            calls.append(record.key)
        if record.key in fail_keys:
            raise RuntimeError(f"upstream rejected {record.key}")
        return {"done": True}

    return apply


def not_done(record: TargetRecord) -> bool:
    return not record.get("done")


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def backend() -> InMemoryStateBackend:
    return InMemoryStateBackend()


@pytest.fixture
def driver(backend, clock) -> BatchDriver:
    return BatchDriver(backend, clock)


@pytest.fixture
def make_store():
    """Build an InMemoryRecordStore with keys k001..kNNN."""

    def factory(count: int, **fields) -> InMemoryRecordStore:
        return InMemoryRecordStore({f"k{i:03d}": dict(fields) for i in range(1, count + 1)})

    return factory


@pytest.fixture
def make_job():
    """Build a JobDefinition with fast test defaults."""

    def factory(store, apply=None, **overrides) -> JobDefinition:
        options = dict(
            name="test_job",
            store=store,
            is_eligible=not_done,
            apply=apply or enrich_apply(),
            page_size=200,
            batch_quota=10,
            lock_ttl=timedelta(minutes=30),
            item_pause_seconds=0.5,
            page_pause_seconds=5.0,
        )
        options.update(overrides)
        return JobDefinition(**options)

    return factory


@pytest.fixture
def apply_factory():
    """enrich_apply as a fixture: apply_factory(calls=[], fail_keys={...})."""
    return enrich_apply
