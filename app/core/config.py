from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings

# .env lives at the project root: app/core/config.py -> app/core -> app -> root
_ROOT = Path(__file__).resolve().parent.parent.parent
_ENV_FILE = _ROOT / ".env"

# An OpenAI key is considered valid only with this prefix (no stray whitespace etc.)
OPENAI_KEY_PREFIX = "sk-"


class Settings(BaseSettings):
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    openai_timeout_seconds: float = 60.0
    secret_key: str = "change-me-in-production"
    database_url: str = "sqlite:///./healthmate.db"
    # CORS: comma separated origins; in production e.g. https://app.example.com
    cors_origins: str = "*"
    # Requests per minute per user (or per IP when anonymous)
    rate_limit_per_minute: int = 60
    # Manual re-analysis is expensive (one model call each)
    rate_limit_analyze_per_minute: int = 5
    # memory:// keeps counters per process; redis://host:6379 shares them across workers
    rate_limit_storage_uri: str = "memory://"
    admin_secret: str = ""
    upload_dir: str = str(_ROOT / "data" / "uploads")
    upload_max_mb: int = 10
    fetch_timeout_seconds: float = 30.0
    # Background analysis pool; 0 disables it (jobs stay queued in the database)
    analysis_workers: int = 4
    job_lease_seconds: int = 300
    job_max_attempts: int = 3
    worker_poll_seconds: float = 2.0

    model_config = {
        "env_file": _ENV_FILE if _ENV_FILE.is_file() else ".env",
        "extra": "ignore",
    }

    @field_validator("openai_api_key", mode="before")
    @classmethod
    def strip_openai_key(cls, v: str | None) -> str:
        """Guards against whitespace picked up while copying the key."""
        return (v or "").strip()

    @field_validator("job_lease_seconds")
    @classmethod
    def lease_covers_network_calls(cls, v: int) -> int:
        if v < 1:
            raise ValueError("JOB_LEASE_SECONDS must be positive")
        return v


settings = Settings()


def is_openai_configured() -> bool:
    key = (settings.openai_api_key or "").strip()
    return bool(key) and key.startswith(OPENAI_KEY_PREFIX)


def upload_root() -> Path:
    return Path(settings.upload_dir).resolve()
