"""Per-user rate limiting (SlowAPI); falls back to the client IP, proxy (X-Forwarded-For) aware."""
from fastapi import Request

from slowapi import Limiter

from .config import settings
from .security import decode_access_token


def _get_client_ip(request: Request) -> str:
    """Real client IP behind a proxy (Render, Nginx)."""
    xff = request.headers.get("x-forwarded-for")
    if xff:
        return xff.split(",")[0].strip()
    if request.client and request.client.host:
        return request.client.host
    return "127.0.0.1"


def _rate_limit_key(request: Request) -> str:
    auth = request.headers.get("authorization") or ""
    if auth.lower().startswith("bearer "):
        payload = decode_access_token(auth[7:].strip())
        if payload and payload.get("sub"):
            return f"user:{payload['sub']}"
    return f"ip:{_get_client_ip(request)}"


limiter = Limiter(
    key_func=_rate_limit_key,
    storage_uri=settings.rate_limit_storage_uri,
)
