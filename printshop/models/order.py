# printshop/models/order.py
"""
Order: a priced print job and its payment gate.

Status machine:
    pending -> verifying -> approved -> done
    pending|verifying -> cancelled

Every status change is validated against TRANSITIONS through
resolve_transition(); the lifecycle engine, the batch path, the expiry
sweeper and payment confirmation all go through it.

Time: naive UTC, DateTime without timezone=True.
"""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import JSON, Boolean, CheckConstraint, Column, DateTime
from sqlalchemy import Enum as SQLEnum
from sqlalchemy import ForeignKey, Index, Integer, Numeric, String, Text

from printshop.core.exceptions import AlreadyTransitioned, GuardViolation
from printshop.models.base import Base, utc_now


# ---------------------------------------------------------------------------
# Enums and the transition table
# ---------------------------------------------------------------------------
class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    VERIFYING = "verifying"
    APPROVED = "approved"
    DONE = "done"
    CANCELLED = "cancelled"


class OrderAction(str, enum.Enum):
    VERIFY = "verify"
    CANCEL = "cancel"
    APPROVE = "approve"
    REJECT = "reject"
    COMPLETE = "complete"


class PricingBasis(str, enum.Enum):
    AREA = "area"
    UNIT = "unit"


class BillingStatus(str, enum.Enum):
    PAID = "paid"
    UNPAID = "unpaid"
    CANCELLED = "cancelled"


# action -> (expected prior status, target status)
TRANSITIONS: dict[OrderAction, tuple[OrderStatus, OrderStatus]] = {
    OrderAction.VERIFY: (OrderStatus.PENDING, OrderStatus.VERIFYING),
    OrderAction.CANCEL: (OrderStatus.PENDING, OrderStatus.CANCELLED),
    OrderAction.APPROVE: (OrderStatus.VERIFYING, OrderStatus.APPROVED),
    OrderAction.REJECT: (OrderStatus.VERIFYING, OrderStatus.CANCELLED),
    OrderAction.COMPLETE: (OrderStatus.APPROVED, OrderStatus.DONE),
}

ALLOWED_TRANSITIONS: dict[OrderStatus, set[OrderStatus]] = {
    OrderStatus.PENDING: {OrderStatus.VERIFYING, OrderStatus.CANCELLED},
    OrderStatus.VERIFYING: {OrderStatus.APPROVED, OrderStatus.CANCELLED},
    OrderStatus.APPROVED: {OrderStatus.DONE},
    OrderStatus.DONE: set(),
    OrderStatus.CANCELLED: set(),
}


def _reachable_from(status: OrderStatus) -> set[OrderStatus]:
    seen: set[OrderStatus] = set()
    stack = list(ALLOWED_TRANSITIONS.get(status, set()))
    while stack:
        s = stack.pop()
        if s in seen:
            continue
        seen.add(s)
        stack.extend(ALLOWED_TRANSITIONS.get(s, set()))
    return seen


def resolve_transition(current: OrderStatus, action: OrderAction) -> tuple[OrderStatus, OrderStatus]:
    """
    Return (expected, target) for `action` applied to an order in `current`.

    Raises AlreadyTransitioned when the order already sits at the action's
    target or somewhere after it, GuardViolation for every other state the
    action cannot apply from.
    """
    action = OrderAction(action)
    current = OrderStatus(current)
    expected, target = TRANSITIONS[action]
    if current == expected:
        return expected, target
    if current == target or current in _reachable_from(target):
        raise AlreadyTransitioned(
            f"Order is already {current.value}",
            extra={"status": current.value, "action": action.value},
        )
    raise GuardViolation(
        f"Cannot {action.value} an order in status {current.value}",
        extra={"status": current.value, "action": action.value},
    )


def _enum_values(e: type[enum.Enum]) -> list[str]:
    return [m.value for m in e]


# ---------------------------------------------------------------------------
# Order
# ---------------------------------------------------------------------------
class Order(Base):
    __tablename__ = "client_orders"

    id = Column(Integer, primary_key=True)
    client_id = Column(ForeignKey("clients.id", ondelete="RESTRICT"), nullable=False)

    title = Column(String(255), nullable=False)
    notes = Column(Text, nullable=True)
    product_type = Column(String(64), nullable=False)
    material = Column(String(128), nullable=False)
    width_cm = Column(Numeric(12, 2), nullable=True)
    height_cm = Column(Numeric(12, 2), nullable=True)
    quantity = Column(Integer, nullable=False, default=1)
    design_files = Column(JSON, nullable=False, default=list)

    # pricing snapshot, written once at creation
    unit_price = Column(Numeric(14, 4), nullable=False, default=0)
    pricing_basis = Column(
        SQLEnum(PricingBasis, name="pricing_basis", values_callable=_enum_values),
        nullable=False,
    )
    amount_subtotal = Column(Numeric(14, 2), nullable=False, default=0)
    tax_rate = Column(Numeric(6, 4), nullable=False, default=0)
    tax_amount = Column(Numeric(14, 2), nullable=False, default=0)
    amount_total = Column(Numeric(14, 2), nullable=False, default=0)
    currency = Column(String(8), nullable=False, default="IDR")

    # payment gate
    vendor_whitelisted = Column(Boolean, nullable=False, default=False)
    payment_required = Column(Boolean, nullable=False, default=True)
    payment_deadline = Column(DateTime, nullable=True)
    payment_url = Column(String(512), nullable=True)
    paid_at = Column(DateTime, nullable=True)

    status = Column(
        SQLEnum(OrderStatus, name="order_status", values_callable=_enum_values),
        nullable=False,
        default=OrderStatus.PENDING,
    )
    approved_at = Column(DateTime, nullable=True)
    approved_by = Column(String(64), nullable=True)
    completed_at = Column(DateTime, nullable=True)
    completed_by = Column(String(64), nullable=True)
    cancelled_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, default=utc_now)
    updated_at = Column(DateTime, nullable=False, default=utc_now, onupdate=utc_now)

    __table_args__ = (
        CheckConstraint("quantity >= 1", name="quantity_positive"),
        Index("ix__client_orders__client_created", "client_id", "created_at"),
        Index("ix__client_orders__status", "status"),
        Index("ix__client_orders__status_deadline", "status", "payment_deadline"),
    )

    @property
    def billing_status(self) -> BillingStatus:
        if self.status == OrderStatus.CANCELLED:
            return BillingStatus.CANCELLED
        if self.paid_at is not None:
            return BillingStatus.PAID
        return BillingStatus.UNPAID

    def deadline_passed(self, now: datetime) -> bool:
        return self.payment_deadline is not None and now > self.payment_deadline

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Order id={self.id} client={self.client_id} status={getattr(self.status, 'value', self.status)}>"


__all__ = [
    "Order",
    "OrderStatus",
    "OrderAction",
    "PricingBasis",
    "BillingStatus",
    "TRANSITIONS",
    "ALLOWED_TRANSITIONS",
    "resolve_transition",
]
