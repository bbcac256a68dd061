"""Analysis results: manual re-trigger, listing and reviewer notes."""
import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlmodel import Session, select

from app.api.deps import get_current_user_id, get_owned_file, get_owned_insight, notify_workers
from app.core.config import settings
from app.core.database import get_db
from app.core.rate_limit import limiter
from app.models import FileRecord, InsightRecord
from app.schemas import AnalyzeFileResponse, InsightOut, InsightReviewRequest
from app.services.pipeline import AlreadyProcessedError, AnalysisInProgressError, request_reanalysis

log = logging.getLogger("healthmate")

router = APIRouter(prefix="/ai", tags=["ai"])

ANALYZE_LIMIT = f"{settings.rate_limit_analyze_per_minute}/minute"


def insight_out(rec: InsightRecord) -> InsightOut:
    return InsightOut(
        id=rec.id or 0,
        file_id=rec.file_id,
        summary={"english": rec.summary_english, "urdu": rec.summary_urdu},
        key_findings=rec.key_findings or [],
        recommendations=rec.recommendations or {},
        doctor_questions=rec.doctor_questions or {},
        risk_factors=rec.risk_factors or [],
        follow_up_required=rec.follow_up_required,
        follow_up_timeframe=rec.follow_up_timeframe,
        confidence=rec.confidence,
        processing_time_ms=rec.processing_time_ms,
        model=rec.model,
        used_fallback=rec.used_fallback,
        overall_risk_level=rec.overall_risk_level,
        critical_findings_count=len(rec.critical_findings),
        is_reviewed=rec.is_reviewed,
        reviewed_by=rec.reviewed_by,
        reviewed_at=rec.reviewed_at,
        review_notes=rec.review_notes,
        created_at=rec.created_at,
    )


@router.post("/analyze-file/{file_id}", response_model=AnalyzeFileResponse, status_code=202)
@limiter.limit(ANALYZE_LIMIT)
def analyze_file(
    request: Request,
    file: FileRecord = Depends(get_owned_file),
    db: Session = Depends(get_db),
):
    """Re-runs analysis for a pending or failed file; completed files are rejected."""
    try:
        job = request_reanalysis(db, file)
    except AlreadyProcessedError:
        raise HTTPException(status_code=400, detail="File already processed")
    except AnalysisInProgressError as e:
        raise HTTPException(status_code=409, detail=str(e))
    notify_workers(request)
    db.refresh(file)
    return AnalyzeFileResponse(
        file_id=file.id or 0,
        job_id=job.id or 0,
        processing_status=file.processing_status,
    )


@router.get("/insights", response_model=list[InsightOut])
def list_insights(
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    page: int = 1,
    limit: int = 10,
):
    page = max(1, page)
    limit = max(1, min(limit, 100))
    stmt = (
        select(InsightRecord)
        .where(InsightRecord.user_id == user_id)
        .order_by(InsightRecord.created_at.desc(), InsightRecord.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return [insight_out(r) for r in db.exec(stmt).all()]


@router.get("/insights/{insight_id}", response_model=InsightOut)
def get_insight(insight: InsightRecord = Depends(get_owned_insight)):
    return insight_out(insight)


@router.put("/insights/{insight_id}/review", response_model=InsightOut)
def review_insight(
    body: InsightReviewRequest,
    insight: InsightRecord = Depends(get_owned_insight),
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Only the review fields are writable; the analysis itself is immutable."""
    insight.is_reviewed = True
    insight.reviewed_by = user_id
    insight.reviewed_at = datetime.utcnow()
    insight.review_notes = (body.review_notes or "").strip() or None
    db.add(insight)
    db.commit()
    db.refresh(insight)
    log.info("Insight %s reviewed by user %s", insight.id, user_id)
    return insight_out(insight)
