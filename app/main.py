import logging
import time
import traceback
import uuid
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv

# .env is loaded from the project root regardless of where uvicorn runs
_PROJ_ROOT = Path(__file__).resolve().parent.parent
load_dotenv(_PROJ_ROOT / ".env")

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException
from sqlalchemy import text
from sqlmodel import Session

from app.api.admin import router as admin_router
from app.api.files import router as files_router
from app.api.insights import router as insights_router
from app.api.vitals import router as vitals_router
from app.core.config import is_openai_configured, settings
from app.core.database import engine, init_db
from app.core.rate_limit import limiter
from app.logging import setup_logging
from app.models import ErrorLog
from app.services.analyze import ping_model
from app.services.pipeline import count_stale_jobs
from app.services.worker import AnalysisWorkerPool

setup_logging(level=logging.INFO)
log = logging.getLogger("healthmate")


def _cors_origins_list() -> list[str]:
    if not settings.cors_origins or settings.cors_origins.strip() == "*":
        return ["*"]
    return [o.strip() for o in settings.cors_origins.split(",") if o.strip()]


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    log.info("OPENAI_API_KEY loaded: %s", "yes" if is_openai_configured() else "NO (add OPENAI_API_KEY=sk-... to .env)")
    with Session(engine) as db:
        stale = count_stale_jobs(db)
    if stale:
        log.warning("%s analysis job(s) hold an expired lease and will be reclaimed", stale)
    pool = None
    if settings.analysis_workers > 0:
        pool = AnalysisWorkerPool(settings.analysis_workers, poll_seconds=settings.worker_poll_seconds)
        pool.start()
    app.state.worker_pool = pool
    try:
        yield
    finally:
        if pool is not None:
            pool.stop()


app = FastAPI(
    title="HealthMate Insights API",
    description="Medical report storage and AI analysis API",
    lifespan=lifespan,
)
app.state.limiter = limiter
app.state.worker_pool = None


def _error_response(request: Request, status_code: int, detail: str, headers: dict | None = None) -> JSONResponse:
    rid = getattr(request.state, "request_id", None)
    body = {"error": detail, "status_code": status_code}
    if rid:
        body["request_id"] = rid
    return JSONResponse(status_code=status_code, content=body, headers=headers)


def _rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    log.warning("Rate limit exceeded: path=%s limit=%s", request.url.path, exc.detail)
    return _error_response(request, 429, "Too many requests. Please wait a minute and try again.")


def _validation_error_message(exc: RequestValidationError) -> str:
    errs = exc.errors()
    if not errs:
        return "Invalid request."
    first = errs[0]
    loc = list(first.get("loc") or [])
    field = str(loc[-1]) if loc else None
    if first.get("type") == "missing":
        if field == "file":
            return "No file was sent. Please select the file and try again."
        if field:
            return f"Missing required field: {field}."
    return first.get("msg") or "Invalid request."


def _jsonable_errors(errs) -> list[dict]:
    """pydantic error dicts may carry exception objects under 'ctx'."""
    out = []
    for e in errs:
        item = {k: v for k, v in e.items() if k in ("type", "loc", "msg")}
        item["loc"] = [str(p) for p in item.get("loc", [])]
        out.append(item)
    return out


@app.exception_handler(RequestValidationError)
def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errs = exc.errors()
    log.warning("Request validation error (422): path=%s method=%s detail=%s", request.url.path, request.method, errs)
    rid = getattr(request.state, "request_id", None)
    body = {"error": _validation_error_message(exc), "status_code": 422, "detail": _jsonable_errors(errs)}
    if rid:
        body["request_id"] = rid
    return JSONResponse(status_code=422, content=body)


app.add_exception_handler(RateLimitExceeded, _rate_limit_handler)


@app.exception_handler(StarletteHTTPException)
def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    return _error_response(request, exc.status_code, detail, headers=getattr(exc, "headers", None))


@app.exception_handler(Exception)
def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    log.exception("Unhandled exception: path=%s %s", request.url.path, exc)
    try:
        with Session(engine) as db:
            db.add(ErrorLog(
                user_id=None,
                endpoint=request.url.path,
                method=request.method,
                error_message=str(exc)[:2000],
                stack_trace=traceback.format_exc()[:10000],
            ))
            db.commit()
    except Exception as e:
        log.warning("ErrorLog write failed: %s", e)
    return _error_response(request, 500, "Unexpected server error.")


@app.middleware("http")
async def request_id_and_latency(request: Request, call_next):
    request.state.request_id = str(uuid.uuid4())
    start = time.perf_counter()
    response = await call_next(request)
    latency_ms = (time.perf_counter() - start) * 1000
    response.headers["X-Request-ID"] = request.state.request_id
    log.info(
        "request_id=%s method=%s path=%s status=%s latency_ms=%.2f",
        request.state.request_id,
        request.method,
        request.url.path,
        response.status_code,
        latency_ms,
    )
    return response


app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins_list(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(files_router)
app.include_router(insights_router)
app.include_router(vitals_router)
app.include_router(admin_router)


@app.get("/health")
def health():
    database = "ok"
    try:
        with Session(engine) as db:
            db.connection().execute(text("SELECT 1"))
    except Exception as e:
        log.warning("Health check database error: %s", e)
        database = "error"
    return {"status": "ok", "openai_configured": is_openai_configured(), "database": database}


@app.get("/health/ai")
def health_ai():
    """One-token model ping; reports latency without exposing the key."""
    if not is_openai_configured():
        return {"ok": False, "latency_ms": None, "model": settings.openai_model, "error": "OPENAI_API_KEY not configured"}
    ok, latency_ms, error = ping_model()
    return {"ok": ok, "latency_ms": latency_ms, "model": settings.openai_model, "error": error}


@app.get("/")
def index():
    return {"status": "ready", "service": "healthmate-insights", "docs": "/docs"}
