"""Structured, bilingual result of one analysis attempt; immutable apart from the review fields."""
from datetime import datetime

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

FINDING_STATUSES = ("normal", "high", "low", "abnormal", "critical")
RISK_LEVELS = ("low", "medium", "high")
FOLLOW_UP_TIMEFRAMES = ("1-week", "2-weeks", "1-month", "3-months", "6-months", "1-year")


class InsightRecord(SQLModel, table=True):
    __tablename__ = "insights"
    id: int | None = Field(default=None, primary_key=True)
    file_id: int = Field(index=True)
    user_id: int = Field(index=True)
    raw_text: str
    summary_english: str
    summary_urdu: str
    key_findings: list[dict] = Field(default_factory=list, sa_column=Column(JSON))
    recommendations: dict = Field(default_factory=dict, sa_column=Column(JSON))  # {"english": [...], "urdu": [...]}
    doctor_questions: dict = Field(default_factory=dict, sa_column=Column(JSON))
    risk_factors: list[dict] = Field(default_factory=list, sa_column=Column(JSON))
    follow_up_required: bool = False
    follow_up_timeframe: str | None = None
    confidence: int = 0
    processing_time_ms: int = 0
    model: str = "gpt-4o-mini"
    used_fallback: bool = False
    is_reviewed: bool = False
    reviewed_by: int | None = None
    reviewed_at: datetime | None = None
    review_notes: str | None = None
    created_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def overall_risk_level(self) -> str:
        levels = [rf.get("level") for rf in self.risk_factors or []]
        if levels.count("high") > 0:
            return "high"
        if levels.count("medium") > 2:
            return "medium"
        return "low"

    @property
    def critical_findings(self) -> list[dict]:
        return [f for f in self.key_findings or [] if f.get("status") in ("critical", "abnormal")]
