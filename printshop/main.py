"""
PrintShop order service: FastAPI app factory.

- Lifespan: schema + vendor seed on startup, expiry sweeper start/stop
- Middleware: request-id logging context
- Global problem+json exception handlers
- /health with DB and sweeper status
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, Optional

import uvicorn
from fastapi import FastAPI, Request
from sqlalchemy.orm import sessionmaker

from printshop.core.config import Settings, get_settings
from printshop.core.db import dispose_engine, get_session_factory, health_check_db, init_db
from printshop.core.dependencies import build_services
from printshop.core.exceptions import register_exception_handlers
from printshop.core.logging import LoggingContextMiddleware, get_logger, setup_logging
from printshop.models.base import utc_now
from printshop.routers import mount_routers
from printshop.services.lifecycle import Clock
from printshop.worker.expiry_sweeper import ExpirySweeper

logger = get_logger(__name__)


# ======================================================================================
# LIFESPAN (startup -> yield -> shutdown)
# ======================================================================================
@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    logger.info("app_startup", env=settings.ENVIRONMENT, version=settings.VERSION)

    if app.state.init_schema:
        init_db()

    sweeper: ExpirySweeper = app.state.sweeper
    if app.state.start_sweeper:
        sweeper.start()

    try:
        yield
    finally:
        sweeper.stop()
        if app.state.init_schema:
            dispose_engine()
        logger.info("app_shutdown_complete")


# ======================================================================================
# APP FACTORY
# ======================================================================================
def create_app(
    settings: Optional[Settings] = None,
    *,
    session_factory: Optional[sessionmaker] = None,
    clock: Clock = utc_now,
    start_sweeper: Optional[bool] = None,
) -> FastAPI:
    settings = settings or get_settings()
    setup_logging()

    app = FastAPI(
        title=settings.PROJECT_NAME,
        version=settings.VERSION,
        debug=settings.DEBUG,
        lifespan=lifespan,
    )

    services = build_services(session_factory or get_session_factory(), settings, clock=clock)
    app.state.settings = settings
    app.state.services = services
    app.state.sweeper = ExpirySweeper(services.engine, settings)
    # an injected session factory means the caller owns the schema
    app.state.init_schema = session_factory is None
    app.state.start_sweeper = settings.EXPIRY_SWEEP_ENABLED if start_sweeper is None else start_sweeper

    app.add_middleware(LoggingContextMiddleware)
    register_exception_handlers(app)
    mount_routers(app, prefix=settings.API_PREFIX)

    @app.get("/health")
    def health(request: Request) -> dict[str, Any]:
        db_ok = health_check_db() if request.app.state.init_schema else True
        return {
            "status": "ok" if db_ok else "degraded",
            "version": settings.VERSION,
            "environment": settings.ENVIRONMENT,
            "database": db_ok,
            "sweeper": request.app.state.sweeper.get_status(),
        }

    return app


def run() -> None:
    """Console entry point: `printshop-api`."""
    settings = get_settings()
    uvicorn.run("printshop.main:app", host=settings.HOST, port=int(settings.PORT), log_level=settings.LOG_LEVEL.lower())


# Uvicorn entrypoint
app: FastAPI = create_app()
