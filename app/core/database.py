from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from .config import settings


def _normalized_database_url(raw_url: str) -> str:
    """
    DATABASE_URL normalization:
    - postgres:// or postgresql:// is rewritten to the psycopg3 dialect.
    - Anything else (SQLite etc.) is left untouched.
    """
    if not raw_url:
        return "sqlite:///./healthmate.db"
    raw_url = raw_url.strip()
    # postgres://...  -> postgresql+psycopg://...
    if raw_url.startswith("postgres://"):
        return "postgresql+psycopg://" + raw_url[len("postgres://") :]
    # postgresql://... (no driver given) -> postgresql+psycopg://...
    if raw_url.startswith("postgresql://") and "+psycopg" not in raw_url.split("://", 1)[0]:
        return "postgresql+psycopg://" + raw_url[len("postgresql://") :]
    return raw_url


DATABASE_URL = _normalized_database_url(settings.database_url)

# In-memory SQLite: a single shared connection so init_db tables are visible everywhere (tests)
_connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
_use_static_pool = DATABASE_URL.startswith("sqlite") and ":memory:" in DATABASE_URL
engine = create_engine(
    DATABASE_URL,
    connect_args=_connect_args,
    poolclass=StaticPool if _use_static_pool else None,
)


def get_db():
    with Session(engine) as session:
        yield session


def conditional_update(db: Session, stmt) -> int:
    """
    Runs an UPDATE ... WHERE <expected current state> inside the session's transaction
    and returns the number of matched rows (0 means another writer got there first).
    """
    result = db.connection().execute(stmt)
    db.expire_all()
    return result.rowcount


def init_db():
    # Import registers every table on SQLModel.metadata
    import app.models  # noqa: F401

    SQLModel.metadata.create_all(engine)
