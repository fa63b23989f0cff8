# printshop/core/dependencies.py
"""
FastAPI dependencies:
- Service container (engine, catalog, vendor directory, reassignment hook) on app.state
- Identity: X-Client-Id / X-Actor-Id headers, trusted as already authenticated
  by the identity collaborator in front of this service
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.orm import sessionmaker

from printshop.core.config import Settings
from printshop.core.logging import bind_context
from printshop.models.base import utc_now
from printshop.services.lifecycle import Clock, OrderLifecycleEngine
from printshop.services.order_store import OrderStore
from printshop.services.payments import PaymentLinkProvider
from printshop.services.pricing import CatalogConfig, PricingCatalog
from printshop.services.reassignment import VendorReassignmentHook
from printshop.services.vendor_directory import VendorDirectory


# ------------------------------------------------------------------------------
# Service container
# ------------------------------------------------------------------------------
@dataclass
class Services:
    settings: Settings
    catalog: PricingCatalog
    vendors: VendorDirectory
    links: PaymentLinkProvider
    store: OrderStore
    engine: OrderLifecycleEngine
    reassignment: VendorReassignmentHook


def build_services(
    session_factory: sessionmaker,
    settings: Settings,
    *,
    catalog_config: Optional[CatalogConfig] = None,
    clock: Clock = utc_now,
) -> Services:
    catalog = PricingCatalog(catalog_config or CatalogConfig.from_settings(settings))
    vendors = VendorDirectory(session_factory)
    links = PaymentLinkProvider.from_settings(settings)
    store = OrderStore(session_factory)
    engine = OrderLifecycleEngine(
        session_factory,
        catalog,
        vendors,
        links,
        settings=settings,
        clock=clock,
        store=store,
    )
    return Services(
        settings=settings,
        catalog=catalog,
        vendors=vendors,
        links=links,
        store=store,
        engine=engine,
        reassignment=VendorReassignmentHook(store, vendors, clock=clock),
    )


def get_services(request: Request) -> Services:
    services = getattr(request.app.state, "services", None)
    if services is None:  # pragma: no cover - lifespan always sets it
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Service not initialized")
    return services


def get_engine(services: Services = Depends(get_services)) -> OrderLifecycleEngine:
    return services.engine


# ------------------------------------------------------------------------------
# Identity
# ------------------------------------------------------------------------------
def get_actor_id(x_actor_id: Optional[str] = Header(None, alias="X-Actor-Id")) -> Optional[str]:
    actor = (x_actor_id or "").strip() or None
    if actor:
        bind_context(actor_id=actor)
    return actor


def require_actor_id(actor_id: Optional[str] = Depends(get_actor_id)) -> str:
    if not actor_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="X-Actor-Id header is required")
    return actor_id


def require_client_id(x_client_id: Optional[str] = Header(None, alias="X-Client-Id")) -> int:
    raw = (x_client_id or "").strip()
    if not raw.isdigit():
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="X-Client-Id header is required")
    client_id = int(raw)
    bind_context(client_id=client_id)
    return client_id


__all__ = [
    "Services",
    "build_services",
    "get_services",
    "get_engine",
    "get_actor_id",
    "require_actor_id",
    "require_client_id",
]
