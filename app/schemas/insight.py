"""
Insight payload schema.

`InsightPayload` is what the model is asked to return (camelCase keys, see the
prompt in app/services/analyze.py). Validation is forgiving: enum
values outside the allowed set are coerced to a safe default, confidence is
clamped to 0-100 and missing optional parts become empty lists, so a payload that
parses as JSON always validates into a complete record.
"""
from datetime import datetime

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from app.models.insight import FINDING_STATUSES, FOLLOW_UP_TIMEFRAMES, RISK_LEVELS

DEFAULT_FINDING_STATUS = "abnormal"
DEFAULT_RISK_LEVEL = "medium"
DEFAULT_TIMEFRAME = "1-month"
DEFAULT_CONFIDENCE = 60
SUMMARY_PLACEHOLDER_EN = "Analysis completed"
SUMMARY_PLACEHOLDER_UR = "Roman Urdu summary not available"


def _text(v) -> str:
    if v is None:
        return ""
    return str(v).strip()


def _text_list(v) -> list[str]:
    if v is None:
        return []
    if isinstance(v, str):
        v = [v]
    if not isinstance(v, (list, tuple)):
        return []
    return [_text(item) for item in v if _text(item)]


def _only_dicts(v) -> list[dict]:
    if not isinstance(v, list):
        return []
    return [item for item in v if isinstance(item, dict)]


class Bilingual(BaseModel):
    english: str = ""
    urdu: str = ""

    @field_validator("english", "urdu", mode="before")
    @classmethod
    def _as_text(cls, v) -> str:
        return _text(v)


class BilingualList(BaseModel):
    english: list[str] = Field(default_factory=list)
    urdu: list[str] = Field(default_factory=list)

    @field_validator("english", "urdu", mode="before")
    @classmethod
    def _as_text_list(cls, v) -> list[str]:
        return _text_list(v)


def _bilingual_or_none(v):
    if v is None:
        return None
    if isinstance(v, str):
        return {"english": v, "urdu": ""}
    if isinstance(v, dict):
        return v
    return None


class KeyFinding(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    parameter: str = "Unspecified"
    value: str = ""
    unit: str | None = None
    status: str = DEFAULT_FINDING_STATUS
    normal_range: str | None = Field(default=None, validation_alias=AliasChoices("normalRange", "normal_range"))
    significance: Bilingual | None = None

    @field_validator("parameter", mode="before")
    @classmethod
    def _parameter(cls, v) -> str:
        return _text(v) or "Unspecified"

    @field_validator("value", mode="before")
    @classmethod
    def _value(cls, v) -> str:
        return _text(v)

    @field_validator("unit", "normal_range", mode="before")
    @classmethod
    def _optional_text(cls, v) -> str | None:
        return _text(v) or None

    @field_validator("status", mode="before")
    @classmethod
    def _status(cls, v) -> str:
        s = _text(v).lower()
        return s if s in FINDING_STATUSES else DEFAULT_FINDING_STATUS

    @field_validator("significance", mode="before")
    @classmethod
    def _significance(cls, v):
        return _bilingual_or_none(v)


class RiskFactor(BaseModel):
    factor: str = "Unspecified"
    level: str = DEFAULT_RISK_LEVEL
    description: Bilingual = Field(default_factory=Bilingual)

    @field_validator("factor", mode="before")
    @classmethod
    def _factor(cls, v) -> str:
        return _text(v) or "Unspecified"

    @field_validator("level", mode="before")
    @classmethod
    def _level(cls, v) -> str:
        s = _text(v).lower()
        return s if s in RISK_LEVELS else DEFAULT_RISK_LEVEL

    @field_validator("description", mode="before")
    @classmethod
    def _description(cls, v):
        return _bilingual_or_none(v) or {}


class InsightPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    summary: Bilingual = Field(default_factory=Bilingual)
    key_findings: list[KeyFinding] = Field(default_factory=list, alias="keyFindings")
    recommendations: BilingualList = Field(default_factory=BilingualList)
    doctor_questions: BilingualList = Field(default_factory=BilingualList, alias="doctorQuestions")
    risk_factors: list[RiskFactor] = Field(default_factory=list, alias="riskFactors")
    follow_up_required: bool = Field(default=False, alias="followUpRequired")
    follow_up_timeframe: str = Field(default=DEFAULT_TIMEFRAME, alias="followUpTimeframe")
    confidence: int = DEFAULT_CONFIDENCE

    @field_validator("summary", mode="before")
    @classmethod
    def _summary(cls, v):
        # Some models answer with a bare string summary
        if isinstance(v, str):
            return {"english": v}
        return v if isinstance(v, dict) else {}

    @field_validator("key_findings", "risk_factors", mode="before")
    @classmethod
    def _entries(cls, v) -> list[dict]:
        return _only_dicts(v)

    @field_validator("recommendations", "doctor_questions", mode="before")
    @classmethod
    def _lists(cls, v):
        if isinstance(v, (list, str)):
            return {"english": v}
        return v if isinstance(v, dict) else {}

    @field_validator("follow_up_required", mode="before")
    @classmethod
    def _follow_up(cls, v) -> bool:
        if isinstance(v, str):
            return v.strip().lower() in ("true", "yes", "1")
        return bool(v)

    @field_validator("follow_up_timeframe", mode="before")
    @classmethod
    def _timeframe(cls, v) -> str:
        s = _text(v).lower()
        return s if s in FOLLOW_UP_TIMEFRAMES else DEFAULT_TIMEFRAME

    @field_validator("confidence", mode="before")
    @classmethod
    def _confidence(cls, v) -> int:
        if isinstance(v, bool) or v is None:
            return DEFAULT_CONFIDENCE
        try:
            n = float(str(v).strip().rstrip("%"))
        except ValueError:
            return DEFAULT_CONFIDENCE
        if n != n:  # NaN
            return DEFAULT_CONFIDENCE
        return int(round(max(0.0, min(100.0, n))))

    @model_validator(mode="after")
    def _non_empty_summary(self):
        if not self.summary.english:
            self.summary.english = SUMMARY_PLACEHOLDER_EN
        if not self.summary.urdu:
            self.summary.urdu = SUMMARY_PLACEHOLDER_UR
        return self


class InsightOut(BaseModel):
    id: int
    file_id: int
    summary: Bilingual
    key_findings: list[KeyFinding]
    recommendations: BilingualList
    doctor_questions: BilingualList
    risk_factors: list[RiskFactor]
    follow_up_required: bool
    follow_up_timeframe: str | None = None
    confidence: int
    processing_time_ms: int
    model: str
    used_fallback: bool = False
    overall_risk_level: str
    critical_findings_count: int = 0
    is_reviewed: bool = False
    reviewed_by: int | None = None
    reviewed_at: datetime | None = None
    review_notes: str | None = None
    created_at: datetime


class InsightReviewRequest(BaseModel):
    review_notes: str | None = Field(default=None, max_length=1000)
