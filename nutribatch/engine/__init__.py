"""
Resumable batch engine: lock manager, cursor store, progress tracker,
collection scanner, eligibility filter, item transformer and batch driver.
"""
from nutribatch.engine.batch_engine import BatchEngine
from nutribatch.engine.clock import Clock, SystemClock
from nutribatch.engine.definition import JobDefinition
from nutribatch.engine.driver import BatchDriver, DrainSummary, JobStatus, StepState, StepSummary
from nutribatch.engine.records import DELETE_FIELD, InMemoryRecordStore, RecordStore, TargetRecord
from nutribatch.engine.state import InMemoryStateBackend, JobCursor, JobLock, JobProgress, StateBackend

__all__ = [
    "BatchEngine",
    "BatchDriver",
    "Clock",
    "SystemClock",
    "JobDefinition",
    "StepState",
    "StepSummary",
    "DrainSummary",
    "JobStatus",
    "DELETE_FIELD",
    "TargetRecord",
    "RecordStore",
    "InMemoryRecordStore",
    "StateBackend",
    "InMemoryStateBackend",
    "JobCursor",
    "JobLock",
    "JobProgress",
]
