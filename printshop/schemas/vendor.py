"""
Vendor / client-vendor Pydantic schemas.
"""

from typing import Optional

from pydantic import Field

from printshop.schemas.base import BaseResponseSchema, BaseSchema


class VendorCreate(BaseSchema):
    name: str = Field(..., min_length=1, max_length=128)
    is_whitelisted: bool = True


class VendorUpdate(BaseSchema):
    name: Optional[str] = Field(None, min_length=1, max_length=128)
    is_whitelisted: Optional[bool] = None


class VendorResponse(BaseResponseSchema):
    name: str
    is_whitelisted: bool
    created_by_admin_id: Optional[str]


class ClientVendorUpdate(BaseSchema):
    vendor_name: str = Field(..., min_length=1, max_length=128)


class ReassignmentResponse(BaseSchema):
    client_id: int
    vendor_name: Optional[str]
    whitelisted: bool
    relaxed_orders: int
