"""
Payment confirmation signal (stand-in for a payment gateway callback).
"""

from __future__ import annotations

from fastapi import APIRouter, Body, Depends

from printshop.core.dependencies import get_engine
from printshop.schemas.order import OrderResponse, PaymentConfirmRequest, PaymentConfirmResponse
from printshop.services.lifecycle import OrderLifecycleEngine

router = APIRouter()


@router.post("/payments/confirm", response_model=PaymentConfirmResponse)
def confirm_payment(
    payload: PaymentConfirmRequest = Body(...),
    engine: OrderLifecycleEngine = Depends(get_engine),
):
    res = engine.confirm_payment(payload.order_id)
    return PaymentConfirmResponse(
        mode=res.mode,
        updated=res.updated,
        order=OrderResponse.model_validate(res.order),
    )
