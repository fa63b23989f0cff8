"""
Order endpoints.

- Client: create order, list own orders (X-Client-Id)
- Admin: list by status, get one, single and batch transitions (X-Actor-Id)
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Body, Depends, Path, Query, status

from printshop.core.dependencies import get_engine, require_actor_id, require_client_id
from printshop.models.order import OrderAction, OrderStatus
from printshop.schemas.order import (
    BatchTransitionRequest,
    BatchTransitionResponse,
    OrderCreate,
    OrderResponse,
)
from printshop.services.lifecycle import OrderLifecycleEngine

client_router = APIRouter()
admin_router = APIRouter(dependencies=[Depends(require_actor_id)])


# -------------------- client --------------------
@client_router.post("/orders", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
def create_order(
    payload: OrderCreate = Body(...),
    client_id: int = Depends(require_client_id),
    engine: OrderLifecycleEngine = Depends(get_engine),
):
    return engine.create_order(client_id, payload.to_spec())


@client_router.get("/orders", response_model=list[OrderResponse])
def list_my_orders(
    client_id: int = Depends(require_client_id),
    engine: OrderLifecycleEngine = Depends(get_engine),
):
    return engine.list_by_client(client_id)


# -------------------- admin --------------------
@admin_router.get("/orders", response_model=list[OrderResponse])
def list_orders(
    status_filter: Optional[OrderStatus] = Query(None, alias="status"),
    engine: OrderLifecycleEngine = Depends(get_engine),
):
    return engine.list_by_status(status_filter)


@admin_router.post("/orders/batch/{action}", response_model=BatchTransitionResponse)
def transition_orders(
    action: OrderAction = Path(...),
    payload: BatchTransitionRequest = Body(...),
    actor_id: str = Depends(require_actor_id),
    engine: OrderLifecycleEngine = Depends(get_engine),
):
    result = engine.transition_many(payload.order_ids, action, actor_id)
    return BatchTransitionResponse(action=action, succeeded=result.succeeded, failed=result.failed)


@admin_router.get("/orders/{order_id}", response_model=OrderResponse)
def get_order(
    order_id: int = Path(..., ge=1),
    engine: OrderLifecycleEngine = Depends(get_engine),
):
    return engine.get_order(order_id)


@admin_router.post("/orders/{order_id}/{action}", response_model=OrderResponse)
def transition_order(
    order_id: int = Path(..., ge=1),
    action: OrderAction = Path(...),
    actor_id: str = Depends(require_actor_id),
    engine: OrderLifecycleEngine = Depends(get_engine),
):
    return engine.transition(order_id, action, actor_id)
