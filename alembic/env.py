from __future__ import annotations

import logging
import os
from logging.config import fileConfig
from typing import Any

from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.engine.create import create_engine
from sqlalchemy.exc import OperationalError

from alembic import context

from printshop.core.config import get_settings
from printshop.models import Base

# =============================================================================
# Alembic config and logging
# =============================================================================
config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

logger = logging.getLogger("alembic.env")

target_metadata = Base.metadata


# =============================================================================
# Database URL: ALEMBIC_DATABASE_URL > settings.DATABASE_URL > alembic.ini
# =============================================================================
def _resolve_url() -> str:
    url = os.getenv("ALEMBIC_DATABASE_URL") or get_settings().DATABASE_URL or config.get_main_option("sqlalchemy.url")
    if not url:
        raise RuntimeError("No database URL configured for migrations")
    return url


def _detect_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def make_context_kwargs(url: str) -> dict[str, Any]:
    """Shared settings for context.configure(...)."""
    return dict(
        target_metadata=target_metadata,
        compare_type=True,
        compare_server_default=True,
        render_as_batch=_detect_sqlite(url),
        version_table=os.getenv("ALEMBIC_VERSION_TABLE") or "alembic_version",
    )


# =============================================================================
# Offline migrations
# =============================================================================
def run_migrations_offline() -> None:
    url = _resolve_url()
    context.configure(url=url, literal_binds=True, **make_context_kwargs(url))
    with context.begin_transaction():
        context.run_migrations()


# =============================================================================
# Online migrations
# =============================================================================
def _run_migrations_sync(connection: Connection, url: str) -> None:
    context.configure(connection=connection, **make_context_kwargs(url))
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    url = _resolve_url()
    engine = create_engine(url, poolclass=pool.NullPool)
    try:
        with engine.connect() as connection:
            _run_migrations_sync(connection, url)
    except OperationalError as exc:
        logger.error("Database connection failed: %s", exc)
        raise
    finally:
        engine.dispose()


if context.is_offline_mode():
    logger.info("Running migrations in OFFLINE mode")
    run_migrations_offline()
else:
    logger.info("Running migrations in ONLINE mode")
    run_migrations_online()
