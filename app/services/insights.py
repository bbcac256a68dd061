"""InsightPayload + job context → persisted InsightRecord, linked to its file in the same transaction."""
import logging
from datetime import datetime

from sqlalchemy import update
from sqlmodel import Session

from app.core.database import conditional_update
from app.models.file_record import STATUS_COMPLETED, STATUS_PROCESSING, FileRecord
from app.models.insight import InsightRecord
from app.schemas.insight import DEFAULT_TIMEFRAME, InsightPayload

logger = logging.getLogger(__name__)


class InsightPersistError(Exception):
    """The insight could not be stored and linked; nothing was written."""


def build_insight(
    payload: InsightPayload,
    file: FileRecord,
    *,
    raw_text: str,
    processing_time_ms: int,
    model: str,
    used_fallback: bool = False,
) -> InsightRecord:
    return InsightRecord(
        file_id=file.id,
        user_id=file.user_id,
        raw_text=raw_text or f"File: {file.original_name}",
        summary_english=payload.summary.english,
        summary_urdu=payload.summary.urdu,
        key_findings=[f.model_dump() for f in payload.key_findings],
        recommendations=payload.recommendations.model_dump(),
        doctor_questions=payload.doctor_questions.model_dump(),
        risk_factors=[r.model_dump() for r in payload.risk_factors],
        follow_up_required=payload.follow_up_required,
        follow_up_timeframe=payload.follow_up_timeframe or DEFAULT_TIMEFRAME,
        confidence=max(0, min(100, int(payload.confidence))),
        processing_time_ms=max(0, int(processing_time_ms)),
        model=model,
        used_fallback=used_fallback,
    )


def persist_insight(db: Session, file_id: int, insight: InsightRecord) -> InsightRecord:
    """
    Inserts the insight and moves the file processing → completed with the link set.
    Both happen in one transaction; on any failure it is rolled back and InsightPersistError raised.
    """
    try:
        db.add(insight)
        db.flush()
        linked = conditional_update(
            db,
            update(FileRecord)
            .where(
                FileRecord.id == file_id,
                FileRecord.processing_status == STATUS_PROCESSING,
                FileRecord.insight_id.is_(None),
            )
            .values(
                processing_status=STATUS_COMPLETED,
                insight_id=insight.id,
                updated_at=datetime.utcnow(),
            ),
        )
        if linked != 1:
            raise InsightPersistError(f"File {file_id} is no longer processing or already linked")
        db.commit()
    except InsightPersistError:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        raise InsightPersistError(f"Insight could not be saved: {e}") from e
    db.refresh(insight)
    logger.info("Insight %s linked to file %s (confidence=%s)", insight.id, file_id, insight.confidence)
    return insight
