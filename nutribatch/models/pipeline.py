"""
Batch Engine State Models

- BatchJobState: one small keyed document per (kind, job_name)

Kinds:
- lock: {locked, acquired_at, owner_token}
- cursor: {last_key, finished}
- progress: {total_processed, total_updated, total_failed, last_update}

Each kind is written independently so a cursor advance never clobbers
progress counters or the lock.
"""
from sqlalchemy import Column, String, DateTime, JSON, Index

from nutribatch.core.database import Base
from nutribatch.core.utils import utcnow


class BatchJobState(Base):
    """
    Persisted engine state for a named job.

    Stored as JSON documents keyed by (kind, job_name); the engine never
    holds a process-wide "current job".
    """
    __tablename__ = "batch_job_state"

    kind = Column(String(20), primary_key=True)
    job_name = Column(String(100), primary_key=True)

    data = Column(JSON, nullable=False, default=dict)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index('ix_batch_job_state_job', 'job_name'),
    )
