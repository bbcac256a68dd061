"""Uploaded medical documents: metadata, storage locator and processing status."""
from datetime import date, datetime

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

REPORT_TYPES = (
    "blood-test",
    "urine-test",
    "x-ray",
    "ct-scan",
    "mri",
    "ultrasound",
    "ecg",
    "prescription",
    "discharge-summary",
    "consultation",
    "other",
)
FILE_TYPES = ("image", "document")

STATUS_PENDING = "pending"
STATUS_PROCESSING = "processing"
STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"
PROCESSING_STATUSES = (STATUS_PENDING, STATUS_PROCESSING, STATUS_COMPLETED, STATUS_FAILED)
TERMINAL_STATUSES = (STATUS_COMPLETED, STATUS_FAILED)


class FileRecord(SQLModel, table=True):
    __tablename__ = "files"
    id: int | None = Field(default=None, primary_key=True)
    user_id: int = Field(index=True)
    original_name: str
    stored_name: str
    storage_locator: str
    file_type: str = "document"  # image | document
    mime_type: str = "application/octet-stream"
    file_size: int = 0
    report_type: str = Field(default="other", index=True)
    test_date: date
    lab_name: str | None = None
    doctor_name: str | None = None
    description: str | None = Field(default=None, max_length=500)
    tags: list[str] = Field(default_factory=list, sa_column=Column(JSON))
    # pending -> processing -> completed | failed; only the analysis pipeline writes it
    processing_status: str = Field(default=STATUS_PENDING, index=True)
    insight_id: int | None = Field(default=None, index=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime | None = Field(default_factory=datetime.utcnow)

    @property
    def is_processed(self) -> bool:
        return self.processing_status == STATUS_COMPLETED and self.insight_id is not None
