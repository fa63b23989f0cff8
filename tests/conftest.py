# tests/conftest.py
"""
Pytest configuration and fixtures.

- Each test gets its own in-memory SQLite database (StaticPool, one shared connection).
- A controllable clock is injected into the lifecycle engine so payment windows
  can be crossed without sleeping.
- Factories for clients and vendors; an HTTP client over the real app factory.
"""

from __future__ import annotations

import os
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Optional

# Settings are cached on first use: the test environment must be in place before any app import.
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("EXPIRY_SWEEP_ENABLED", "false")
os.environ.setdefault("PUBLIC_BASE_URL", "http://pay.test")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from fastapi.testclient import TestClient

from printshop.core.config import get_settings
from printshop.core.db import build_engine, build_session_factory, session_scope
from printshop.core.dependencies import build_services
from printshop.main import create_app
from printshop.models import Base, Client
from printshop.services.lifecycle import OrderSpec
from printshop.worker.expiry_sweeper import ExpirySweeper

START = datetime(2025, 1, 6, 9, 0, 0)


class FakeClock:
    """Naive-UTC clock that only moves when told to."""

    def __init__(self, start: datetime = START):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def db_engine():
    eng = build_engine("sqlite://")
    Base.metadata.create_all(bind=eng)
    try:
        yield eng
    finally:
        eng.dispose()


@pytest.fixture
def session_factory(db_engine):
    return build_session_factory(db_engine)


@pytest.fixture
def services(session_factory, settings, clock):
    svc = build_services(session_factory, settings, clock=clock)
    svc.vendors.seed_defaults(["kubus", "fma"])
    return svc


@pytest.fixture
def lifecycle(services):
    return services.engine


@pytest.fixture
def sweeper(services, settings):
    sw = ExpirySweeper(services.engine, settings)
    yield sw
    sw.stop()


@pytest.fixture
def make_client(session_factory):
    """Factory: approved client bound to a vendor (whitelisted by default seed: kubus/fma)."""
    counter = {"n": 0}

    def _make(vendor_name: Optional[str] = "kubus", *, approved: bool = True, **fields: Any) -> Client:
        counter["n"] += 1
        n = counter["n"]
        with session_scope(session_factory) as db:
            client = Client(
                full_name=fields.pop("full_name", f"Client {n}"),
                email=fields.pop("email", f"client{n}@example.com"),
                phone=fields.pop("phone", None),
                vendor_name=vendor_name,
                is_approved=approved,
                **fields,
            )
            db.add(client)
            db.flush()
        return client

    return _make


@pytest.fixture
def spec():
    """Factory for order specs; defaults price to 1.2 x 100 x 50 x 2 = 12000."""

    def _spec(**overrides: Any) -> OrderSpec:
        data: dict[str, Any] = {
            "title": "Shop front banner",
            "product_type": "spanduk",
            "material": "Flexi Korea 340gsm",
            "width_cm": Decimal("100"),
            "height_cm": Decimal("50"),
            "quantity": 2,
        }
        data.update(overrides)
        return OrderSpec(**data)

    return _spec


@pytest.fixture
def api(session_factory, settings, clock, services):
    app = create_app(settings, session_factory=session_factory, clock=clock, start_sweeper=False)
    with TestClient(app) as client:
        yield client
