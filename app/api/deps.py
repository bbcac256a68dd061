from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlmodel import Session

from app.core.database import get_db
from app.core.security import decode_access_token
from app.models import FileRecord, InsightRecord

security = HTTPBearer(auto_error=False)


def get_current_user_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> int:
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required.",
            headers={"WWW-Authenticate": "Bearer"},
        )
    payload = decode_access_token(credentials.credentials)
    if not payload or "sub" not in payload:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token.",
        )
    try:
        return int(payload["sub"])
    except (TypeError, ValueError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token subject.")


def get_owned_file(
    file_id: int,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> FileRecord:
    file = db.get(FileRecord, file_id)
    if not file or file.user_id != user_id:
        raise HTTPException(status_code=404, detail="File not found")
    return file


def get_owned_insight(
    insight_id: int,
    user_id: int = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> InsightRecord:
    insight = db.get(InsightRecord, insight_id)
    if not insight or insight.user_id != user_id:
        raise HTTPException(status_code=404, detail="Insight not found")
    return insight


def notify_workers(request: Request) -> None:
    """Wakes the background pool (if running) after a job was committed."""
    pool = getattr(request.app.state, "worker_pool", None)
    if pool is not None:
        pool.notify()
