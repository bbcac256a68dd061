"""Admin API: X-Admin-Secret only. Analysis queue overview."""
import hmac

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from sqlmodel import Session, func, select

from app.core.config import settings
from app.core.database import get_db
from app.models import AnalysisJob
from app.models.analysis_job import JOB_STATUSES
from app.schemas import JobOut

router = APIRouter(prefix="/admin", tags=["admin"])


def _admin_secret_matches(provided: str | None, expected: str | None) -> bool:
    """Timing-safe comparison."""
    return hmac.compare_digest((provided or "").encode("utf-8"), (expected or "").encode("utf-8"))


def _require_admin(x_admin_secret: str | None = Header(None, alias="X-Admin-Secret")) -> None:
    if not (settings.admin_secret or "").strip():
        raise HTTPException(status_code=503, detail="Admin API not configured (ADMIN_SECRET missing).")
    if not _admin_secret_matches(x_admin_secret, settings.admin_secret):
        raise HTTPException(status_code=403, detail="Forbidden.")


@router.get("/queue", response_model=list[JobOut])
def queue_list(
    _: None = Depends(_require_admin),
    db: Session = Depends(get_db),
    limit: int = Query(100, ge=1, le=500),
    status_filter: str | None = None,
):
    stmt = select(AnalysisJob).order_by(AnalysisJob.id.desc()).limit(limit)
    if status_filter and status_filter in JOB_STATUSES:
        stmt = stmt.where(AnalysisJob.status == status_filter)
    return [JobOut.model_validate(j, from_attributes=True) for j in db.exec(stmt).all()]


@router.get("/queue/stats")
def queue_stats(_: None = Depends(_require_admin), db: Session = Depends(get_db)):
    rows = db.exec(select(AnalysisJob.status, func.count(AnalysisJob.id)).group_by(AnalysisJob.status)).all()
    counts = {s: 0 for s in JOB_STATUSES}
    for status, n in rows:
        counts[status] = n
    return counts
