"""
Batch Engine Exception Hierarchy

All exceptions include code, message, and details so trigger handlers can log
them and return structured summaries instead of raw tracebacks.

Exception Hierarchy:
    BatchEngineError
    ├── ConfigurationError      (fail fast, before any record is touched)
    ├── StoreError
    │   ├── StateStoreError     (lock / cursor / progress documents)
    │   └── RecordStoreError    (target records)
    ├── TransformError          (terminal per-item failure, contained)
    ├── JobLockedError          (drain refused: active lock)
    └── UnknownJobError
"""
import logging
from typing import Optional, Dict, Any

logger = logging.getLogger(__name__)


class BatchEngineError(Exception):
    """
    Base exception for all batch engine errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code for programmatic handling
        details: Additional context for debugging/audit
        severity: P0-P3 severity level
    """

    default_code: str = "BATCH_ERROR"
    default_severity: str = "P2"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        severity: Optional[str] = None,
    ):
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}
        self.severity = severity or self.default_severity
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "severity": self.severity,
            "details": self.details,
        }

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(code={self.code!r}, message={self.message!r})"


class ConfigurationError(BatchEngineError):
    """Missing credential or invalid job configuration."""
    default_code = "CONFIGURATION_ERROR"
    default_severity = "P1"


class StoreError(BatchEngineError):
    """Base for persistence failures. Never retried by the engine."""
    default_code = "STORE_ERROR"
    default_severity = "P1"


class StateStoreError(StoreError):
    """Reading or writing a job state document failed."""
    default_code = "STATE_STORE_ERROR"


class RecordStoreError(StoreError):
    """Reading or patching a target record failed."""
    default_code = "RECORD_STORE_ERROR"

    def __init__(self, message: str, key: Optional[str] = None, **kwargs):
        details = kwargs.pop("details", {})
        details.update({"key": key})
        super().__init__(message, details=details, **kwargs)


class TransformError(BatchEngineError):
    """Transformation failed after all retry attempts."""
    default_code = "TRANSFORM_FAILED"
    default_severity = "P3"

    def __init__(
        self,
        message: str,
        key: Optional[str] = None,
        attempts: int = 0,
        cause: Optional[BaseException] = None,
        **kwargs
    ):
        details = kwargs.pop("details", {})
        details.update({
            "key": key,
            "attempts": attempts,
            "cause_type": type(cause).__name__ if cause else None,
        })
        super().__init__(message, details=details, **kwargs)
        self.key = key
        self.attempts = attempts
        self.cause = cause


class JobLockedError(BatchEngineError):
    """A drain was requested while the job holds an active lock."""
    default_code = "JOB_LOCKED"
    default_severity = "P3"

    def __init__(self, job_name: str, owner_token: Optional[str] = None, **kwargs):
        details = kwargs.pop("details", {})
        details.update({"job_name": job_name, "owner_token": owner_token})
        super().__init__(f"Job {job_name} is already running", details=details, **kwargs)
        self.job_name = job_name


class UnknownJobError(BatchEngineError):
    """No job definition is registered under the requested name."""
    default_code = "UNKNOWN_JOB"
    default_severity = "P3"

    def __init__(self, job_name: str, available: Optional[list] = None, **kwargs):
        details = kwargs.pop("details", {})
        details.update({"job_name": job_name, "available": available or []})
        super().__init__(f"Unknown job: {job_name}", details=details, **kwargs)
        self.job_name = job_name
