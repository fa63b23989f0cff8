"""HTTP routers: thin wrappers over the lifecycle engine and vendor directory."""

from fastapi import FastAPI

from printshop.routers import catalog, orders, payments, vendors


def mount_routers(app: FastAPI, prefix: str = "/api") -> None:
    app.include_router(catalog.router, prefix=prefix, tags=["catalog"])
    app.include_router(vendors.public_router, prefix=prefix, tags=["vendors"])
    app.include_router(orders.client_router, prefix=f"{prefix}/client", tags=["client-orders"])
    app.include_router(orders.admin_router, prefix=f"{prefix}/admin", tags=["admin-orders"])
    app.include_router(payments.router, prefix=prefix, tags=["payments"])
    app.include_router(vendors.admin_router, prefix=f"{prefix}/admin", tags=["admin-vendors"])


__all__ = ["mount_routers"]
