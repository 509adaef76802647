"""
Job Definition

Everything the driver needs to run one named job: where the records live,
which of them still need work, how to transform one, how to mark a failure,
and the job's pacing and lock policy.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional

from nutribatch.core.exceptions import ConfigurationError, TransformError
from nutribatch.engine.eligibility import EligibilityFilter
from nutribatch.engine.records import RecordStore, TargetRecord
from nutribatch.engine.transformer import (
    ApplyFn,
    DEFAULT_BACKOFF_BASE_SECONDS,
    DEFAULT_MAX_ATTEMPTS,
)

FailurePatchFn = Callable[[TargetRecord, TransformError, datetime], Dict[str, Any]]


def default_failure_patch(record: TargetRecord, error: TransformError, at: datetime) -> Dict[str, Any]:
    return {
        "transform_failed": True,
        "transform_error": error.message[:1000],
        "transform_failed_at": at,
    }


@dataclass
class JobDefinition:
    name: str
    store: RecordStore
    is_eligible: EligibilityFilter
    apply: ApplyFn
    failure_patch: FailurePatchFn = default_failure_patch

    # Scan wide, process narrow
    page_size: int = 200
    batch_quota: int = 10

    lock_ttl: timedelta = field(default_factory=lambda: timedelta(minutes=30))

    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    backoff_base_seconds: float = DEFAULT_BACKOFF_BASE_SECONDS
    item_pause_seconds: float = 0.5
    page_pause_seconds: float = 5.0

    # Raises ConfigurationError when a required credential is missing
    preflight: Optional[Callable[[], None]] = None

    # Record summary shown by inspect(); defaults to the eligibility verdict only
    describe: Optional[Callable[[TargetRecord], Dict[str, Any]]] = None

    description: str = ""

    def __post_init__(self):
        if self.page_size < 1:
            raise ConfigurationError(f"{self.name}: page_size must be positive")
        if not 1 <= self.batch_quota <= self.page_size:
            raise ConfigurationError(
                f"{self.name}: batch_quota must be between 1 and page_size ({self.page_size})"
            )
        if self.lock_ttl.total_seconds() <= 0:
            raise ConfigurationError(f"{self.name}: lock_ttl must be positive")

    def check_configuration(self) -> None:
        if self.preflight is not None:
            self.preflight()
