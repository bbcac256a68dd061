"""Durable analysis queue: pending → processing → done | failed."""
from datetime import datetime

from sqlmodel import Field, SQLModel

JOB_PENDING = "pending"
JOB_PROCESSING = "processing"
JOB_DONE = "done"
JOB_FAILED = "failed"
JOB_STATUSES = (JOB_PENDING, JOB_PROCESSING, JOB_DONE, JOB_FAILED)
ACTIVE_JOB_STATUSES = (JOB_PENDING, JOB_PROCESSING)


class AnalysisJob(SQLModel, table=True):
    __tablename__ = "analysis_jobs"
    id: int | None = Field(default=None, primary_key=True)
    file_id: int = Field(index=True)
    user_id: int = Field(index=True)
    status: str = Field(default=JOB_PENDING, index=True)  # pending | processing | done | failed
    attempts: int = 0
    worker_id: str | None = None
    # A processing job whose lease ran out belongs to a dead worker and may be reclaimed
    lease_expires_at: datetime | None = Field(default=None, index=True)
    duration_ms: int | None = None
    used_fallback: bool = False
    error_message: str | None = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime | None = Field(default_factory=datetime.utcnow)
