"""Medical document upload and CRUD. Upload only queues the analysis; the worker pool runs it."""
import logging
from datetime import date, datetime

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile
from sqlalchemy import or_
from sqlmodel import Session, select

from app.api.deps import get_current_user_id, get_owned_file, notify_workers
from app.api.insights import insight_out
from app.core.config import settings
from app.core.database import get_db
from app.core.rate_limit import limiter
from app.models import AnalysisJob, FileRecord, InsightRecord
from app.models.file_record import PROCESSING_STATUSES, REPORT_TYPES
from app.schemas import FileOut, FileUpdateRequest, InsightOut
from app.services import storage
from app.services.pipeline import enqueue_analysis

log = logging.getLogger("healthmate")

router = APIRouter(prefix="/files", tags=["files"])

RATE_LIMIT_STR = f"{settings.rate_limit_per_minute}/minute"
ALLOWED_UPLOAD_EXTENSIONS = {".pdf", ".jpg", ".jpeg", ".png", ".gif", ".bmp"}
IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".bmp"}
MIME_MAP = {
    ".pdf": "application/pdf",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".bmp": "image/bmp",
}


class FileDetail(FileOut):
    insight: InsightOut | None = None


def file_out(rec: FileRecord) -> FileOut:
    return FileOut(
        id=rec.id or 0,
        original_name=rec.original_name,
        file_type=rec.file_type,
        mime_type=rec.mime_type,
        file_size=rec.file_size,
        report_type=rec.report_type,
        test_date=rec.test_date,
        lab_name=rec.lab_name,
        doctor_name=rec.doctor_name,
        description=rec.description,
        tags=rec.tags or [],
        processing_status=rec.processing_status,
        is_processed=rec.is_processed,
        insight_id=rec.insight_id,
        created_at=rec.created_at,
    )


def _clean(value: str | None, max_len: int, field: str) -> str | None:
    value = (value or "").strip()
    if len(value) > max_len:
        raise HTTPException(status_code=400, detail=f"{field} too long (max {max_len} characters)")
    return value or None


def _split_tags(tags: str | None) -> list[str]:
    return [t.strip() for t in (tags or "").split(",") if t.strip()]


@router.post("/upload", response_model=FileOut, status_code=201)
@limiter.limit(RATE_LIMIT_STR)
async def upload_file(
    request: Request,
    file: UploadFile = File(...),
    report_type: str = Form(...),
    test_date: date = Form(...),
    lab_name: str | None = Form(None),
    doctor_name: str | None = Form(None),
    description: str | None = Form(None),
    tags: str | None = Form(None),
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """multipart/form-data: 'file' (PDF/JPG/PNG/GIF/BMP) plus report metadata."""
    log.info("files/upload: filename=%s report_type=%s", getattr(file, "filename", ""), report_type)
    if report_type not in REPORT_TYPES:
        raise HTTPException(status_code=400, detail="Invalid report type")
    lab_name = _clean(lab_name, 100, "Lab name")
    doctor_name = _clean(doctor_name, 100, "Doctor name")
    description = _clean(description, 500, "Description")

    if not file.filename:
        raise HTTPException(status_code=400, detail="No file selected.")
    ext = "." + file.filename.lower().rsplit(".", 1)[-1] if "." in file.filename else ""
    if ext not in ALLOWED_UPLOAD_EXTENSIONS:
        raise HTTPException(status_code=400, detail="Only PDF, JPG, PNG, GIF or BMP files can be uploaded.")
    try:
        content = await file.read()
    except Exception as e:
        log.exception("files/upload read error: %s", e)
        raise HTTPException(status_code=400, detail="File could not be read.")
    max_bytes = settings.upload_max_mb * 1024 * 1024
    if len(content) > max_bytes:
        raise HTTPException(status_code=413, detail=f"File must be at most {settings.upload_max_mb} MB.")
    if len(content) == 0:
        raise HTTPException(status_code=400, detail="File is empty.")

    try:
        stored_name, locator = storage.save_upload(content, ext)
    except OSError as e:
        log.exception("files/upload store error: %s", e)
        raise HTTPException(status_code=500, detail="File could not be stored.")

    rec = FileRecord(
        user_id=user_id,
        original_name=file.filename,
        stored_name=stored_name,
        storage_locator=locator,
        file_type="image" if ext in IMAGE_EXTENSIONS else "document",
        mime_type=MIME_MAP.get(ext, "application/octet-stream"),
        file_size=len(content),
        report_type=report_type,
        test_date=test_date,
        lab_name=lab_name,
        doctor_name=doctor_name,
        description=description,
        tags=_split_tags(tags),
    )
    try:
        db.add(rec)
        db.flush()
        job = enqueue_analysis(db, rec)
        db.commit()
    except Exception:
        db.rollback()
        storage.delete_upload(locator)
        raise
    db.refresh(rec)
    log.info("File %s stored for user %s, analysis job %s queued", rec.id, user_id, job.id)
    notify_workers(request)
    return file_out(rec)


@router.get("", response_model=list[FileOut])
@router.get("/", response_model=list[FileOut], include_in_schema=False)
def list_files(
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
    report_type: str | None = None,
    status: str | None = None,
    search: str | None = None,
    page: int = 1,
    limit: int = 10,
):
    page = max(1, page)
    limit = max(1, min(limit, 100))
    stmt = select(FileRecord).where(FileRecord.user_id == user_id)
    if report_type and report_type in REPORT_TYPES:
        stmt = stmt.where(FileRecord.report_type == report_type)
    if status and status in PROCESSING_STATUSES:
        stmt = stmt.where(FileRecord.processing_status == status)
    if search and search.strip():
        q = f"%{search.strip()}%"
        stmt = stmt.where(
            or_(
                FileRecord.original_name.ilike(q),
                FileRecord.lab_name.ilike(q),
                FileRecord.doctor_name.ilike(q),
                FileRecord.description.ilike(q),
            )
        )
    stmt = stmt.order_by(FileRecord.test_date.desc(), FileRecord.id.desc()).offset((page - 1) * limit).limit(limit)
    return [file_out(r) for r in db.exec(stmt).all()]


@router.get("/{file_id}", response_model=FileDetail)
def get_file(file: FileRecord = Depends(get_owned_file), db: Session = Depends(get_db)):
    insight = db.get(InsightRecord, file.insight_id) if file.insight_id else None
    return FileDetail(
        **file_out(file).model_dump(),
        insight=insight_out(insight) if insight else None,
    )


@router.put("/{file_id}", response_model=FileOut)
def update_file(
    body: FileUpdateRequest,
    file: FileRecord = Depends(get_owned_file),
    db: Session = Depends(get_db),
):
    """Metadata only; processing status and the insight link are not writable here."""
    updates = body.model_dump(exclude_unset=True)
    for key in ("lab_name", "doctor_name", "description"):
        if key in updates:
            updates[key] = (updates[key] or "").strip() or None
    if "tags" in updates:
        updates["tags"] = [t.strip() for t in (updates["tags"] or []) if t and t.strip()]
    if "report_type" in updates and updates["report_type"] is None:
        updates.pop("report_type")
    if "test_date" in updates and updates["test_date"] is None:
        updates.pop("test_date")
    for key, value in updates.items():
        setattr(file, key, value)
    file.updated_at = datetime.utcnow()
    db.add(file)
    db.commit()
    db.refresh(file)
    return file_out(file)


@router.delete("/{file_id}")
def delete_file(file: FileRecord = Depends(get_owned_file), db: Session = Depends(get_db)):
    """Removes the file row, its insight, its queued jobs and the stored binary."""
    file_id = file.id
    locator = file.storage_locator
    if file.insight_id:
        insight = db.get(InsightRecord, file.insight_id)
        if insight:
            db.delete(insight)
    for job in db.exec(select(AnalysisJob).where(AnalysisJob.file_id == file_id)).all():
        db.delete(job)
    db.delete(file)
    db.commit()
    if not storage.delete_upload(locator):
        log.warning("Stored binary for file %s not removed (%s)", file_id, locator)
    return {"success": True, "message": "File deleted successfully"}
