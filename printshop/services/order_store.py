# printshop/services/order_store.py
from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import select, update
from sqlalchemy.orm import sessionmaker

from printshop.core.db import session_scope
from printshop.core.exceptions import AlreadyTransitioned, NotFoundError
from printshop.models.order import Order, OrderStatus


class OrderStore:
    """
    Persistence seam for orders.

    Every status or payment mutation goes through compare_and_set(): one
    UPDATE keyed on id and the expected prior status (plus any extra gate
    conditions) in its own short transaction. Zero rows matched means some
    other writer moved the order first.
    """

    def __init__(self, session_factory: sessionmaker):
        self._sf = session_factory

    @property
    def session_factory(self) -> sessionmaker:
        return self._sf

    # ------------------------ reads ------------------------
    def find(self, order_id: int) -> Optional[Order]:
        with session_scope(self._sf) as db:
            return db.get(Order, order_id)

    def get(self, order_id: int) -> Order:
        order = self.find(order_id)
        if order is None:
            raise NotFoundError("Order not found", extra={"order_id": order_id})
        return order

    def list_by_status(self, status: Optional[OrderStatus] = None) -> list[Order]:
        stmt = select(Order).order_by(Order.created_at.desc(), Order.id.desc())
        if status is not None:
            stmt = stmt.where(Order.status == OrderStatus(status))
        with session_scope(self._sf) as db:
            return list(db.execute(stmt).scalars())

    def list_by_client(self, client_id: int) -> list[Order]:
        stmt = (
            select(Order)
            .where(Order.client_id == client_id)
            .order_by(Order.created_at.desc(), Order.id.desc())
        )
        with session_scope(self._sf) as db:
            return list(db.execute(stmt).scalars())

    def select_overdue_ids(self, now: datetime) -> list[int]:
        """Pending prepaid orders, still unpaid, whose payment window closed before `now`."""
        stmt = (
            select(Order.id)
            .where(
                Order.status == OrderStatus.PENDING,
                Order.payment_required.is_(True),
                Order.paid_at.is_(None),
                Order.payment_deadline.is_not(None),
                Order.payment_deadline < now,
            )
            .order_by(Order.payment_deadline.asc(), Order.id.asc())
        )
        with session_scope(self._sf) as db:
            return [oid for (oid,) in db.execute(stmt)]

    # ------------------------ writes ------------------------
    def compare_and_set(
        self,
        order_id: int,
        expected: OrderStatus,
        values: Mapping[str, Any],
        *conditions: Any,
    ) -> Order:
        stmt = (
            update(Order)
            .where(Order.id == order_id, Order.status == OrderStatus(expected), *conditions)
            .values(**dict(values))
            .execution_options(synchronize_session=False)
        )
        with session_scope(self._sf) as db:
            result = db.execute(stmt)
            if result.rowcount == 0:
                raise AlreadyTransitioned(
                    "Order was modified concurrently",
                    extra={"order_id": order_id, "expected": OrderStatus(expected).value},
                )
            return db.get(Order, order_id, populate_existing=True)

    def bulk_update(self, values: Mapping[str, Any], *conditions: Any) -> int:
        """Conditional multi-row UPDATE; returns the number of rows changed."""
        stmt = update(Order).where(*conditions).values(**dict(values)).execution_options(synchronize_session=False)
        with session_scope(self._sf) as db:
            return int(db.execute(stmt).rowcount or 0)


__all__ = ["OrderStore"]
