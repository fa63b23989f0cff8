"""
Order Pydantic schemas.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import Field

from printshop.models.order import BillingStatus, OrderAction, OrderStatus, PricingBasis
from printshop.schemas.base import BaseResponseSchema, BaseSchema
from printshop.services.lifecycle import OrderSpec


class DesignFileRef(BaseSchema):
    """Reference to an uploaded design file; storage is handled elsewhere."""

    name: str = Field(..., max_length=255)
    path: str = Field(..., max_length=1024)
    size: int = Field(0, ge=0)
    media_type: Optional[str] = Field(None, max_length=128)


class OrderCreate(BaseSchema):
    """Schema for creating a client order"""

    title: str = Field(..., max_length=255)
    product_type: str = Field(..., max_length=64)
    material: str = Field(..., max_length=128)
    width_cm: Optional[Decimal] = Field(None, ge=0)
    height_cm: Optional[Decimal] = Field(None, ge=0)
    quantity: int = Field(1, ge=1)
    notes: Optional[str] = None
    design_files: list[DesignFileRef] = Field(default_factory=list)

    def to_spec(self) -> OrderSpec:
        return OrderSpec(
            title=self.title,
            product_type=self.product_type,
            material=self.material,
            width_cm=self.width_cm,
            height_cm=self.height_cm,
            quantity=self.quantity,
            notes=self.notes,
            design_files=[f.model_dump() for f in self.design_files],
        )


class OrderResponse(BaseResponseSchema):
    """Schema for order response"""

    client_id: int
    title: str
    notes: Optional[str]
    product_type: str
    material: str
    width_cm: Optional[Decimal]
    height_cm: Optional[Decimal]
    quantity: int
    design_files: list[DesignFileRef]

    unit_price: Decimal
    pricing_basis: PricingBasis
    amount_subtotal: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    amount_total: Decimal
    currency: str

    vendor_whitelisted: bool
    payment_required: bool
    payment_deadline: Optional[datetime]
    payment_url: Optional[str]
    paid_at: Optional[datetime]
    billing_status: BillingStatus

    status: OrderStatus
    approved_at: Optional[datetime]
    approved_by: Optional[str]
    completed_at: Optional[datetime]
    completed_by: Optional[str]
    cancelled_at: Optional[datetime]
    updated_at: datetime


class BatchTransitionRequest(BaseSchema):
    order_ids: list[int] = Field(..., min_length=1)


class BatchTransitionResponse(BaseSchema):
    action: OrderAction
    succeeded: list[int]
    failed: dict[int, str]


class PaymentConfirmRequest(BaseSchema):
    order_id: int


class PaymentConfirmResponse(BaseSchema):
    mode: str
    updated: bool
    order: OrderResponse
