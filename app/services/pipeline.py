"""
Report analysis pipeline and its durable queue.

File status:  pending → processing → completed | failed   (files.processing_status)
Job status:   pending → processing → done | failed         (analysis_jobs.status)

Every state change is a conditional UPDATE on the expected current state, so two
workers (or a worker and a manual re-trigger) can never both own the same file.
A job claimed by a worker holds a lease that is renewed between stages; a job
left in processing with an expired lease (crashed worker, restart) is reclaimed.
"""
import logging
import time
from datetime import datetime, timedelta

from sqlalchemy import and_, or_, update
from sqlmodel import Session, select

from app.core.config import settings
from app.core.database import conditional_update, engine
from app.models.analysis_job import (
    ACTIVE_JOB_STATUSES,
    JOB_DONE,
    JOB_FAILED,
    JOB_PENDING,
    JOB_PROCESSING,
    AnalysisJob,
)
from app.models.file_record import (
    STATUS_COMPLETED,
    STATUS_FAILED,
    STATUS_PENDING,
    STATUS_PROCESSING,
    TERMINAL_STATUSES,
    FileRecord,
)
from app.services import analyze, storage
from app.services.insights import build_insight, persist_insight
from app.services.pdf_extract import extract_text_from_pdf

logger = logging.getLogger(__name__)

MAX_REPORT_CHARS = 30_000
CLAIM_BATCH = 5


class AnalysisRequestError(Exception):
    """A manual analysis request that cannot be accepted in the file's current state."""


class AlreadyProcessedError(AnalysisRequestError):
    pass


class AnalysisInProgressError(AnalysisRequestError):
    pass


class LeaseLostError(Exception):
    """Another worker reclaimed the job; this worker must stop touching it."""


# --- queue -----------------------------------------------------------------


def enqueue_analysis(db: Session, file: FileRecord) -> AnalysisJob:
    """Adds a pending job for the file; the caller commits (together with the file row on upload)."""
    job = AnalysisJob(file_id=file.id, user_id=file.user_id, status=JOB_PENDING)
    db.add(job)
    db.flush()
    return job


def active_job(db: Session, file_id: int) -> AnalysisJob | None:
    stmt = (
        select(AnalysisJob)
        .where(AnalysisJob.file_id == file_id, AnalysisJob.status.in_(ACTIVE_JOB_STATUSES))
        .order_by(AnalysisJob.id.desc())
    )
    return db.exec(stmt).first()


def request_reanalysis(db: Session, file: FileRecord) -> AnalysisJob:
    """
    Manual trigger. Completed files are rejected, files with an analysis in flight are
    rejected, a failed file starts a new attempt from pending.
    """
    if file.processing_status == STATUS_COMPLETED or file.is_processed:
        raise AlreadyProcessedError("File already processed")
    if file.processing_status == STATUS_PROCESSING or active_job(db, file.id) is not None:
        raise AnalysisInProgressError("Analysis already in progress")
    if file.processing_status == STATUS_FAILED:
        reset = conditional_update(
            db,
            update(FileRecord)
            .where(
                FileRecord.id == file.id,
                FileRecord.processing_status == STATUS_FAILED,
                FileRecord.insight_id.is_(None),
            )
            .values(processing_status=STATUS_PENDING, updated_at=datetime.utcnow()),
        )
        if reset != 1:
            db.rollback()
            raise AnalysisInProgressError("File state changed, try again")
    job = enqueue_analysis(db, file)
    db.commit()
    db.refresh(job)
    logger.info("Re-analysis queued: file=%s job=%s", file.id, job.id)
    return job


def _claimable():
    now = datetime.utcnow()
    return or_(
        AnalysisJob.status == JOB_PENDING,
        and_(AnalysisJob.status == JOB_PROCESSING, AnalysisJob.lease_expires_at < now),
    )


def claim_next_job(db: Session, worker_id: str) -> int | None:
    """Claims the oldest pending (or lease-expired) job for this worker; returns its id."""
    candidates = db.exec(select(AnalysisJob.id).where(_claimable()).order_by(AnalysisJob.id).limit(CLAIM_BATCH)).all()
    for job_id in candidates:
        now = datetime.utcnow()
        claimed = conditional_update(
            db,
            update(AnalysisJob)
            .where(AnalysisJob.id == job_id, _claimable())
            .values(
                status=JOB_PROCESSING,
                worker_id=worker_id,
                attempts=AnalysisJob.attempts + 1,
                lease_expires_at=now + timedelta(seconds=settings.job_lease_seconds),
                updated_at=now,
            ),
        )
        db.commit()
        if claimed != 1:
            continue
        job = db.get(AnalysisJob, job_id)
        file_id, attempts = job.file_id, job.attempts
        if attempts > settings.job_max_attempts:
            logger.error("Job %s for file %s abandoned after %s attempts", job_id, file_id, attempts - 1)
            mark_file_failed(db, file_id, abandoned=True)
            _finish_job(db, job_id, JOB_FAILED, f"Gave up after {attempts - 1} attempts")
            continue
        if attempts > 1:
            logger.warning("Reclaimed job %s for file %s (attempt %s)", job_id, file_id, attempts)
        return job_id
    return None


def heartbeat(db: Session, job_id: int, worker_id: str) -> None:
    """Extends the lease; raises LeaseLostError when the job is no longer ours."""
    now = datetime.utcnow()
    renewed = conditional_update(
        db,
        update(AnalysisJob)
        .where(
            AnalysisJob.id == job_id,
            AnalysisJob.worker_id == worker_id,
            AnalysisJob.status == JOB_PROCESSING,
        )
        .values(lease_expires_at=now + timedelta(seconds=settings.job_lease_seconds), updated_at=now),
    )
    db.commit()
    if renewed != 1:
        raise LeaseLostError(f"Job {job_id} lease lost by {worker_id}")


def _finish_job(
    db: Session,
    job_id: int,
    status: str,
    error_message: str | None = None,
    duration_ms: int | None = None,
    used_fallback: bool = False,
) -> None:
    job = db.get(AnalysisJob, job_id)
    if job is None:
        # Deleted together with its file while running
        return
    job.status = status
    job.error_message = error_message[:500] if error_message else None
    job.duration_ms = duration_ms
    job.used_fallback = used_fallback
    job.lease_expires_at = None
    job.updated_at = datetime.utcnow()
    db.add(job)
    db.commit()


# --- file status -----------------------------------------------------------


def claim_file(db: Session, file_id: int) -> bool:
    """pending → processing as a single conditional update; True when this caller won."""
    claimed = conditional_update(
        db,
        update(FileRecord)
        .where(FileRecord.id == file_id, FileRecord.processing_status == STATUS_PENDING)
        .values(processing_status=STATUS_PROCESSING, updated_at=datetime.utcnow()),
    )
    db.commit()
    return claimed == 1


def mark_file_failed(db: Session, file_id: int, *, abandoned: bool = False) -> bool:
    """processing -> failed; an abandoned job also fails a file still waiting in pending."""
    if abandoned:
        expected = FileRecord.processing_status.not_in(TERMINAL_STATUSES)
    else:
        expected = FileRecord.processing_status == STATUS_PROCESSING
    failed = conditional_update(
        db,
        update(FileRecord)
        .where(FileRecord.id == file_id, expected)
        .values(processing_status=STATUS_FAILED, updated_at=datetime.utcnow()),
    )
    db.commit()
    return failed == 1


# --- stages ----------------------------------------------------------------


def metadata_description(file: FileRecord, note: str | None = None) -> str:
    lines = [
        "Medical Report Analysis Request:",
        f"File: {file.original_name}",
        f"Type: {file.file_type}",
        f"Report Type: {file.report_type}",
        f"Lab: {file.lab_name or 'Not specified'}",
        f"Doctor: {file.doctor_name or 'Not specified'}",
        f"Date: {file.test_date}",
    ]
    if file.description:
        lines.append(f"Description: {file.description}")
    if note:
        lines += ["", f"Note: {note}"]
    lines += ["", "Please analyze this medical report and provide insights."]
    return "\n".join(lines)


def load_report_source(file: FileRecord) -> tuple[bytes | None, str | None, str]:
    """
    Returns (image_bytes, text, raw_text) for the model.
    Storage or extraction problems degrade to a metadata description instead of failing the job.
    """
    try:
        data = storage.fetch_file_bytes(file.storage_locator, file.file_type)
    except storage.FetchError as e:
        logger.warning("Fetch failed for file %s (%s): %s; analyzing metadata only", file.id, e.kind, e)
        text = metadata_description(file, f"Could not download the {file.file_type} for analysis. Please analyze based on metadata.")
        return None, text, text

    if file.file_type == "image":
        return data, None, f"Image file: {file.original_name}"

    try:
        extracted = extract_text_from_pdf(data)
    except Exception as e:
        logger.warning("Text extraction failed for file %s: %s; analyzing metadata only", file.id, e)
        extracted = ""
    if not extracted:
        text = metadata_description(file, "No text could be extracted from the document. Please analyze based on metadata.")
        return None, text, text
    text = extracted[:MAX_REPORT_CHARS]
    return None, text, text


def run_analysis(job_id: int, worker_id: str) -> str | None:
    """
    Runs a claimed job to a terminal state. Returns the file's final status
    (None when the file is gone or the lease was lost to another worker).
    """
    t0 = time.perf_counter()
    with Session(engine) as db:
        job = db.get(AnalysisJob, job_id)
        if job is None:
            # File deleted (with its jobs) after the claim
            return None
        attempts = job.attempts
        file = db.get(FileRecord, job.file_id)
        if file is None:
            logger.warning("Job %s: file %s not found", job_id, job.file_id)
            _finish_job(db, job_id, JOB_FAILED, "File not found")
            return None
        file_id = file.id

        if not claim_file(db, file_id):
            db.refresh(file)
            # A reclaimed job continues the attempt its crashed worker started
            resumable = file.processing_status == STATUS_PROCESSING and attempts > 1
            if not resumable:
                logger.info("Job %s skipped: file %s is %s", job_id, file_id, file.processing_status)
                _finish_job(db, job_id, JOB_FAILED, f"File not claimable (status={file.processing_status})")
                return file.processing_status
        logger.info("Analysis started: file=%s job=%s worker=%s", file_id, job_id, worker_id)

        try:
            image_bytes, text, raw_text = load_report_source(file)
            heartbeat(db, job_id, worker_id)
            result = analyze.analyze_medical_report(
                file.report_type,
                file_type=file.file_type,
                original_name=file.original_name,
                lab_name=file.lab_name,
                doctor_name=file.doctor_name,
                test_date=file.test_date,
                file_bytes=image_bytes,
                text=text,
            )
            heartbeat(db, job_id, worker_id)
            if result.used_fallback:
                logger.warning("File %s analyzed with fallback payload", file_id)
            insight = build_insight(
                result.payload,
                file,
                raw_text=raw_text,
                processing_time_ms=result.processing_time_ms,
                model=result.model,
                used_fallback=result.used_fallback,
            )
            persist_insight(db, file_id, insight)
        except LeaseLostError as e:
            db.rollback()
            logger.warning("Stopping job %s: %s", job_id, e)
            return None
        except Exception as e:
            db.rollback()
            logger.exception("Analysis failed for file %s (job %s): %s", file_id, job_id, e)
            mark_file_failed(db, file_id)
            _finish_job(db, job_id, JOB_FAILED, str(e), int((time.perf_counter() - t0) * 1000))
            return STATUS_FAILED

        _finish_job(db, job_id, JOB_DONE, None, int((time.perf_counter() - t0) * 1000), result.used_fallback)
        logger.info("Analysis completed: file=%s job=%s", file_id, job_id)
        return STATUS_COMPLETED


def process_next_job(worker_id: str) -> bool:
    """Claims and runs one job; False when the queue is empty."""
    with Session(engine) as db:
        job_id = claim_next_job(db, worker_id)
    if job_id is None:
        return False
    run_analysis(job_id, worker_id)
    return True


def drain_queue(worker_id: str = "inline", max_jobs: int = 100) -> int:
    """Processes queued jobs in the calling thread (CLI, tests, ANALYSIS_WORKERS=0)."""
    done = 0
    while done < max_jobs and process_next_job(worker_id):
        done += 1
    return done


def count_stale_jobs(db: Session) -> int:
    stmt = select(AnalysisJob.id).where(
        AnalysisJob.status == JOB_PROCESSING,
        AnalysisJob.lease_expires_at < datetime.utcnow(),
    )
    return len(db.exec(stmt).all())
