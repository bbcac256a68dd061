from datetime import date, datetime

from pydantic import BaseModel, Field, field_validator

from app.models.file_record import REPORT_TYPES


class FileOut(BaseModel):
    id: int
    original_name: str
    file_type: str
    mime_type: str
    file_size: int
    report_type: str
    test_date: date
    lab_name: str | None = None
    doctor_name: str | None = None
    description: str | None = None
    tags: list[str] = []
    processing_status: str
    is_processed: bool = False
    insight_id: int | None = None
    created_at: datetime


class FileUpdateRequest(BaseModel):
    """Metadata only; status and insight link belong to the analysis pipeline."""
    report_type: str | None = None
    test_date: date | None = None
    lab_name: str | None = Field(default=None, max_length=100)
    doctor_name: str | None = Field(default=None, max_length=100)
    description: str | None = Field(default=None, max_length=500)
    tags: list[str] | None = None

    @field_validator("report_type")
    @classmethod
    def known_report_type(cls, v: str | None) -> str | None:
        if v is not None and v not in REPORT_TYPES:
            raise ValueError("Invalid report type")
        return v


class AnalyzeFileResponse(BaseModel):
    file_id: int
    job_id: int
    processing_status: str
    message: str = "Analysis queued."


class JobOut(BaseModel):
    id: int
    file_id: int
    user_id: int
    status: str
    attempts: int
    duration_ms: int | None = None
    used_fallback: bool = False
    error_message: str | None = None
    created_at: datetime
