"""
Vendor endpoints.

- Public: whitelisted vendor names for the registration form
- Admin: vendor CRUD and client vendor reassignment
"""

from __future__ import annotations

from fastapi import APIRouter, Body, Depends, Path, Query, Response, status

from printshop.core.dependencies import Services, get_services, require_actor_id
from printshop.schemas.vendor import (
    ClientVendorUpdate,
    ReassignmentResponse,
    VendorCreate,
    VendorResponse,
    VendorUpdate,
)

public_router = APIRouter()
admin_router = APIRouter(dependencies=[Depends(require_actor_id)])


@public_router.get("/vendors", response_model=list[str])
def list_whitelisted_vendors(services: Services = Depends(get_services)):
    return services.vendors.list_whitelisted_names()


@admin_router.get("/vendors", response_model=list[VendorResponse])
def list_vendors(services: Services = Depends(get_services)):
    return services.vendors.list_all()


@admin_router.post("/vendors", response_model=VendorResponse, status_code=status.HTTP_201_CREATED)
def create_vendor(
    payload: VendorCreate = Body(...),
    actor_id: str = Depends(require_actor_id),
    services: Services = Depends(get_services),
):
    return services.vendors.upsert(payload.name, payload.is_whitelisted, actor_id=actor_id)


@admin_router.patch("/vendors/{vendor_id}", response_model=VendorResponse)
def update_vendor(
    vendor_id: int = Path(..., ge=1),
    payload: VendorUpdate = Body(...),
    services: Services = Depends(get_services),
):
    return services.vendors.update(vendor_id, name=payload.name, whitelisted=payload.is_whitelisted)


@admin_router.delete("/vendors/{vendor_id}")
def delete_vendor(
    vendor_id: int = Path(..., ge=1),
    hard: bool = Query(False),
    services: Services = Depends(get_services),
):
    vendor = services.vendors.remove(vendor_id, hard=hard)
    if vendor is None:
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return VendorResponse.model_validate(vendor)


@admin_router.patch("/clients/{client_id}/vendor", response_model=ReassignmentResponse)
def reassign_client_vendor(
    client_id: int = Path(..., ge=1),
    payload: ClientVendorUpdate = Body(...),
    actor_id: str = Depends(require_actor_id),
    services: Services = Depends(get_services),
):
    # the admin screen whitelists the vendor it assigns
    services.vendors.upsert(payload.vendor_name, True, actor_id=actor_id)
    result = services.reassignment.reassign(client_id, payload.vendor_name, actor_id=actor_id)
    return ReassignmentResponse(
        client_id=result.client_id,
        vendor_name=result.vendor_name,
        whitelisted=result.whitelisted,
        relaxed_orders=result.relaxed_orders,
    )
