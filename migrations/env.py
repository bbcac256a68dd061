import sys
from logging.config import fileConfig
from pathlib import Path

from alembic import context
from sqlalchemy import engine_from_config, pool
from sqlmodel import SQLModel

# Project root on sys.path so app.* imports resolve
BASE_DIR = Path(__file__).resolve().parents[1]
if str(BASE_DIR) not in sys.path:
    sys.path.append(str(BASE_DIR))

import app.models  # noqa: E402,F401  registers every table on SQLModel.metadata
from app.core.database import DATABASE_URL  # noqa: E402

# Alembic Config object, read from alembic.ini
config = context.config

# sqlalchemy.url always follows the application's DATABASE_URL
if config.get_main_option("sqlalchemy.url") != str(DATABASE_URL):
    config.set_main_option("sqlalchemy.url", str(DATABASE_URL))

# Logging
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# Target metadata: files, insights, analysis_jobs, error_logs
target_metadata = SQLModel.metadata


def run_migrations_offline() -> None:
    """Offline mode: emits SQL without creating an engine."""
    url = config.get_main_option("sqlalchemy.url")
    context.configure(
        url=url,
        target_metadata=target_metadata,
        literal_binds=True,
        compare_type=True,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Online mode: runs migrations over a real database connection."""
    connectable = engine_from_config(
        config.get_section(config.config_ini_section),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
        )

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()

