# printshop/core/db.py
"""
Database configuration and session management (sync SQLAlchemy 2.x).

- Lazy engine creation: nothing connects at import time.
- SQLite in-memory URLs get a StaticPool so every session sees one database.
- Utilities: get_engine(), get_session_factory(), session_scope(),
  init_db() (create_all + vendor seed), dispose_engine(), health_check_db().
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.engine.url import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from printshop.core.config import get_settings
from printshop.core.logging import get_logger

logger = get_logger(__name__)

_ENGINE: Optional[Engine] = None
_SESSION_FACTORY: Optional[sessionmaker] = None


def _engine_kwargs(url: str, echo: bool) -> Dict[str, Any]:
    kwargs: Dict[str, Any] = {"echo": echo}
    u = make_url(url)
    if u.get_backend_name() == "sqlite":
        kwargs["connect_args"] = {"check_same_thread": False}
        if not u.database or u.database == ":memory:":
            kwargs["poolclass"] = StaticPool
    else:
        kwargs["pool_pre_ping"] = True
    return kwargs


def build_engine(url: Optional[str] = None, *, echo: Optional[bool] = None) -> Engine:
    settings = get_settings()
    url = url or settings.DATABASE_URL
    eng = create_engine(url, **_engine_kwargs(url, settings.SQLALCHEMY_ECHO if echo is None else echo))

    if eng.dialect.name == "sqlite":

        @event.listens_for(eng, "connect")
        def _sqlite_pragmas(dbapi_conn, _record):  # pragma: no cover - driver hook
            cur = dbapi_conn.cursor()
            cur.execute("PRAGMA foreign_keys=ON")
            cur.close()

    return eng


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, class_=Session, autocommit=False, autoflush=False, expire_on_commit=False)


def get_engine() -> Engine:
    global _ENGINE
    if _ENGINE is None:
        _ENGINE = build_engine()
        logger.info("db_engine_created", dialect=_ENGINE.dialect.name)
    return _ENGINE


def get_session_factory() -> sessionmaker:
    global _SESSION_FACTORY
    if _SESSION_FACTORY is None:
        _SESSION_FACTORY = build_session_factory(get_engine())
    return _SESSION_FACTORY


@contextmanager
def session_scope(factory: Optional[sessionmaker] = None) -> Iterator[Session]:
    """Transactional scope: commit on success, rollback and re-raise on error, always close."""
    db = (factory or get_session_factory())()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def init_db(engine: Optional[Engine] = None, *, seed: bool = True) -> None:
    """Create all tables and seed the default vendor whitelist."""
    from printshop.models import Base  # registers every table

    eng = engine or get_engine()
    try:
        Base.metadata.create_all(bind=eng)
        logger.info("db_schema_created", dialect=eng.dialect.name)
    except SQLAlchemyError:
        logger.exception("db_create_all_failed")
        raise

    if seed:
        from printshop.services.vendor_directory import VendorDirectory

        factory = get_session_factory() if engine is None else build_session_factory(eng)
        VendorDirectory(factory).seed_defaults(get_settings().DEFAULT_WHITELISTED_VENDORS)


def dispose_engine() -> None:
    global _ENGINE, _SESSION_FACTORY
    if _ENGINE is not None:
        _ENGINE.dispose()
    _ENGINE = None
    _SESSION_FACTORY = None


def health_check_db() -> bool:
    try:
        with get_engine().connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError as e:
        logger.warning("db_health_check_failed", error=str(e))
        return False


__all__ = [
    "build_engine",
    "build_session_factory",
    "get_engine",
    "get_session_factory",
    "session_scope",
    "init_db",
    "dispose_engine",
    "health_check_db",
]
