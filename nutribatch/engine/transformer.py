"""
Item Transformer

Wraps a job's external transformation (chat model call, image generation)
with a fixed number of attempts and exponential backoff. From the driver's
point of view a transform is record in, patch or TransformError out.

Side effects of the wrapped call happen on every attempt; only applying the
resulting patch to the record store has to be idempotent.

Never retried:
- ConfigurationError: missing credentials, re-raised so the invocation
  fails before more records are touched
- StoreError: persistence failures abort the invocation
"""
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

from nutribatch.core.exceptions import ConfigurationError, StoreError, TransformError
from nutribatch.engine.clock import Clock, SystemClock
from nutribatch.engine.records import TargetRecord

logger = logging.getLogger(__name__)

ApplyFn = Callable[[TargetRecord], Awaitable[Dict[str, Any]]]

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BACKOFF_BASE_SECONDS = 2.0


@dataclass
class TransformOutcome:
    key: str
    patch: Optional[Dict[str, Any]] = None
    error: Optional[TransformError] = None
    attempts: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None


class RetryingTransformer:
    """
    Retry policy shared by every job.

    Delay before attempt n+1 is backoff_base_seconds * 2**(n-1), i.e. 2s, 4s,
    8s with the defaults. No delay follows the final attempt.
    """

    def __init__(
        self,
        apply: ApplyFn,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        backoff_base_seconds: float = DEFAULT_BACKOFF_BASE_SECONDS,
        clock: Optional[Clock] = None,
        name: str = "transform",
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._apply = apply
        self.max_attempts = max_attempts
        self.backoff_base_seconds = backoff_base_seconds
        self._clock = clock or SystemClock()
        self.name = name

    def backoff_delay(self, attempt: int) -> float:
        return self.backoff_base_seconds * (2 ** (attempt - 1))

    async def transform(self, record: TargetRecord) -> TransformOutcome:
        last_error: Optional[Exception] = None

        for attempt in range(1, self.max_attempts + 1):
            try:
                patch = await self._apply(record)
                if attempt > 1:
                    logger.info(f"[{self.name}] {record.key} succeeded on attempt {attempt}")
                return TransformOutcome(key=record.key, patch=dict(patch or {}), attempts=attempt)
            except (ConfigurationError, StoreError):
                raise
            except Exception as e:
                last_error = e
                logger.warning(
                    f"[{self.name}] {record.key} attempt {attempt}/{self.max_attempts} failed: "
                    f"{type(e).__name__}: {e}"
                )

            if attempt < self.max_attempts:
                delay = self.backoff_delay(attempt)
                logger.info(f"[{self.name}] Waiting {delay:.1f}s before retrying {record.key}")
                await self._clock.sleep(delay)

        logger.error(f"[{self.name}] {record.key} failed after {self.max_attempts} attempts")
        return TransformOutcome(
            key=record.key,
            error=TransformError(
                str(last_error) or type(last_error).__name__,
                key=record.key,
                attempts=self.max_attempts,
                cause=last_error,
            ),
            attempts=self.max_attempts,
        )
