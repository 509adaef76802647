"""
Clock capability

Timestamps for locks and progress, TTL comparisons, and the deliberate
rate-limiting pauses all go through a Clock so tests can run the engine
without real sleeps.
"""
import asyncio
from datetime import datetime
from typing import Protocol

from nutribatch.core.utils import utcnow


class Clock(Protocol):
    def now(self) -> datetime:
        ...

    async def sleep(self, seconds: float) -> None:
        ...


class SystemClock:
    """Wall-clock UTC time and asyncio.sleep."""

    def now(self) -> datetime:
        return utcnow()

    async def sleep(self, seconds: float) -> None:
        if seconds > 0:
            await asyncio.sleep(seconds)
