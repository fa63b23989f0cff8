# printshop/services/lifecycle.py
"""
Order lifecycle engine.

Creates priced orders with a payment gate and mediates every status change:
manual single and batch actions, payment confirmation, and the expiry
sweep. All transitions are resolved through `resolve_transition` and written
with `OrderStore.compare_and_set`, so a concurrent writer turns into
AlreadyTransitioned instead of a lost update.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import and_, case, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from printshop.core.config import Settings, get_settings
from printshop.core.db import session_scope
from printshop.core.exceptions import (
    AlreadyTransitioned,
    ClientNotApproved,
    GuardViolation,
    InvalidSpec,
    NotFoundError,
    NotPayable,
    PrintShopException,
)
from printshop.core.logging import get_logger
from printshop.models.base import utc_now
from printshop.models.client import Client
from printshop.models.order import Order, OrderAction, OrderStatus, resolve_transition
from printshop.services.order_store import OrderStore
from printshop.services.payments import PaymentLinkProvider
from printshop.services.pricing import PricingCatalog
from printshop.services.vendor_directory import VendorDirectory

log = get_logger(__name__)

Clock = Callable[[], datetime]

_DESIGN_FILE_KEYS = ("name", "path", "size", "media_type")


@dataclass
class OrderSpec:
    title: str
    product_type: str
    material: str
    width_cm: Optional[Decimal] = None
    height_cm: Optional[Decimal] = None
    quantity: int = 1
    notes: Optional[str] = None
    design_files: list[dict[str, Any]] = field(default_factory=list)


@dataclass
class BatchResult:
    succeeded: list[int] = field(default_factory=list)
    failed: dict[int, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed


@dataclass
class PaymentConfirmation:
    order: Order
    mode: str  # "prepaid" | "postpaid"
    updated: bool


def _normalize_design_files(files: Optional[Iterable[Any]]) -> list[dict[str, Any]]:
    out: list[dict[str, Any]] = []
    for f in files or []:
        data = f.model_dump() if hasattr(f, "model_dump") else dict(f)
        item = {k: data.get(k) for k in _DESIGN_FILE_KEYS}
        for key in ("name", "path"):
            item[key] = str(item[key] or "").strip()
            if not item[key]:
                raise InvalidSpec(f"design file {key} is required", extra={"field": "design_files"})
        try:
            item["size"] = int(item["size"] or 0)
        except (TypeError, ValueError):
            item["size"] = -1
        if item["size"] < 0:
            raise InvalidSpec("design file size must be a non-negative integer", extra={"field": "design_files"})
        out.append(item)
    return out


def _coerce_action(action: Any) -> OrderAction:
    try:
        return OrderAction(action)
    except ValueError:
        raise InvalidSpec(f"Unknown action: {action}", code="UNKNOWN_ACTION", extra={"action": str(action)})


class OrderLifecycleEngine:
    def __init__(
        self,
        session_factory: sessionmaker,
        catalog: PricingCatalog,
        directory: VendorDirectory,
        links: PaymentLinkProvider,
        *,
        settings: Optional[Settings] = None,
        clock: Clock = utc_now,
        store: Optional[OrderStore] = None,
    ):
        self._sf = session_factory
        self.catalog = catalog
        self.directory = directory
        self.links = links
        self.settings = settings or get_settings()
        self.clock = clock
        self.store = store or OrderStore(session_factory)
        self.payment_window = timedelta(minutes=self.settings.PAYMENT_WINDOW_MINUTES)

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------
    def create_order(self, client_id: int, spec: OrderSpec) -> Order:
        title = (spec.title or "").strip()
        if not title:
            raise InvalidSpec("title is required", extra={"field": "title"})

        with session_scope(self._sf) as db:
            client = db.get(Client, client_id)
            if client is None:
                raise NotFoundError("Client not found", extra={"client_id": client_id})
            if self.settings.REQUIRE_CLIENT_APPROVAL and not client.is_approved:
                raise ClientNotApproved("Client account is not approved yet", extra={"client_id": client_id})
            vendor_name = client.vendor_name

        whitelisted = self.directory.is_whitelisted(vendor_name)
        quote = self.catalog.quote(
            spec.product_type,
            spec.material,
            spec.width_cm,
            spec.height_cm,
            spec.quantity,
        ).require_rate()
        design_files = _normalize_design_files(spec.design_files)

        now = self.clock()
        payment_required = not whitelisted
        order = Order(
            client_id=client_id,
            title=title,
            notes=(spec.notes or "").strip() or None,
            product_type=(spec.product_type or "").strip().lower(),
            material=(spec.material or "").strip(),
            width_cm=spec.width_cm,
            height_cm=spec.height_cm,
            quantity=int(spec.quantity),
            design_files=design_files,
            unit_price=quote.unit_price,
            pricing_basis=quote.basis,
            amount_subtotal=quote.subtotal,
            tax_rate=quote.tax_rate,
            tax_amount=quote.tax,
            amount_total=quote.total,
            currency=quote.currency,
            vendor_whitelisted=whitelisted,
            payment_required=payment_required,
            payment_deadline=now + self.payment_window if payment_required else None,
            status=OrderStatus.PENDING,
            created_at=now,
            updated_at=now,
        )
        with session_scope(self._sf) as db:
            db.add(order)
            db.flush()
            if payment_required:
                order.payment_url = self.links.link_for(order.id)

        log.info(
            "order_created",
            order_id=order.id,
            client_id=client_id,
            vendor=vendor_name,
            payment_required=payment_required,
            total=str(quote.total),
        )
        return order

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------
    def transition(self, order_id: int, action: OrderAction | str, actor_id: Optional[str] = None) -> Order:
        action = _coerce_action(action)
        order = self.store.get(order_id)
        expected, target = resolve_transition(order.status, action)

        now = self.clock()
        values: dict[str, Any] = {"status": target, "updated_at": now}
        conditions: list[Any] = []

        if action == OrderAction.VERIFY:
            if order.payment_required and order.paid_at is None:
                raise GuardViolation(
                    "Payment must be confirmed before verification",
                    code="PAYMENT_REQUIRED",
                    extra={"order_id": order_id},
                )
            conditions.append(or_(Order.payment_required.is_(False), Order.paid_at.is_not(None)))
        elif action in (OrderAction.CANCEL, OrderAction.REJECT):
            values["cancelled_at"] = now
        elif action == OrderAction.APPROVE:
            values["approved_at"] = now
            values["approved_by"] = actor_id
        elif action == OrderAction.COMPLETE:
            values["completed_at"] = now
            values["completed_by"] = actor_id
            # postpaid orders get their pay link in the same write
            values["payment_url"] = case(
                (
                    and_(
                        Order.vendor_whitelisted.is_(True),
                        Order.paid_at.is_(None),
                        or_(Order.payment_url.is_(None), Order.payment_url == ""),
                    ),
                    self.links.link_for(order_id),
                ),
                else_=Order.payment_url,
            )

        try:
            updated = self.store.compare_and_set(order_id, expected, values, *conditions)
        except AlreadyTransitioned:
            log.info("order_transition_lost", order_id=order_id, action=action.value, actor_id=actor_id)
            raise

        log.info(
            "order_transitioned",
            order_id=order_id,
            action=action.value,
            from_status=expected.value,
            to_status=target.value,
            actor_id=actor_id,
        )
        return updated

    def transition_many(
        self,
        order_ids: Iterable[int],
        action: OrderAction | str,
        actor_id: Optional[str] = None,
    ) -> BatchResult:
        """Apply one action to many orders; each id succeeds or fails on its own."""
        action = _coerce_action(action)
        result = BatchResult()
        seen: set[int] = set()
        for oid in order_ids:
            oid = int(oid)
            if oid in seen:
                continue
            seen.add(oid)
            try:
                self.transition(oid, action, actor_id)
            except PrintShopException as e:
                result.failed[oid] = e.code
            except SQLAlchemyError:
                log.exception("order_batch_db_error", order_id=oid, action=action.value)
                result.failed[oid] = "DB_ERROR"
            else:
                result.succeeded.append(oid)

        log.info(
            "order_batch_transition",
            action=action.value,
            succeeded=len(result.succeeded),
            failed=len(result.failed),
            actor_id=actor_id,
        )
        return result

    def expire_order(self, order_id: int, now: Optional[datetime] = None) -> Order:
        """Cancel an unpaid prepaid order whose window closed; used by the expiry sweeper."""
        now = now or self.clock()
        expected, target = resolve_transition(OrderStatus.PENDING, OrderAction.CANCEL)
        updated = self.store.compare_and_set(
            order_id,
            expected,
            {"status": target, "cancelled_at": now, "updated_at": now},
            Order.payment_required.is_(True),
            Order.paid_at.is_(None),
            Order.payment_deadline.is_not(None),
            Order.payment_deadline < now,
        )
        log.info("order_expired", order_id=order_id, deadline=str(updated.payment_deadline))
        return updated

    # ------------------------------------------------------------------
    # Payment
    # ------------------------------------------------------------------
    def confirm_payment(self, order_id: int) -> PaymentConfirmation:
        order = self.store.get(order_id)
        now = self.clock()

        if order.status == OrderStatus.PENDING:
            if not order.payment_required:
                raise NotPayable(
                    "Postpaid order is payable once completed",
                    extra={"order_id": order_id, "status": order.status.value},
                )
            if order.deadline_passed(now):
                raise NotPayable("Payment window has closed", code="PAYMENT_WINDOW_CLOSED", extra={"order_id": order_id})
            expected, target = resolve_transition(order.status, OrderAction.VERIFY)
            try:
                updated = self.store.compare_and_set(
                    order_id,
                    expected,
                    {"status": target, "paid_at": now, "updated_at": now},
                    Order.payment_required.is_(True),
                    Order.paid_at.is_(None),
                    or_(Order.payment_deadline.is_(None), Order.payment_deadline >= now),
                )
            except AlreadyTransitioned:
                log.info("payment_confirm_lost", order_id=order_id)
                raise
            log.info("payment_confirmed", order_id=order_id, mode="prepaid")
            return PaymentConfirmation(order=updated, mode="prepaid", updated=True)

        if order.status == OrderStatus.DONE:
            mode = "prepaid" if order.payment_required else "postpaid"
            if order.paid_at is not None:
                log.debug("payment_confirm_noop", order_id=order_id, mode=mode)
                return PaymentConfirmation(order=order, mode=mode, updated=False)
            try:
                updated = self.store.compare_and_set(
                    order_id,
                    OrderStatus.DONE,
                    {"paid_at": now, "updated_at": now},
                    Order.paid_at.is_(None),
                )
            except AlreadyTransitioned:
                # a concurrent confirmation got there first
                return PaymentConfirmation(order=self.store.get(order_id), mode=mode, updated=False)
            log.info("payment_confirmed", order_id=order_id, mode=mode)
            return PaymentConfirmation(order=updated, mode=mode, updated=True)

        raise NotPayable(
            f"Order in status {order.status.value} is not payable",
            extra={"order_id": order_id, "status": order.status.value},
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def get_order(self, order_id: int) -> Order:
        return self.store.get(order_id)

    def list_by_status(self, status: Optional[OrderStatus | str] = None) -> list[Order]:
        return self.store.list_by_status(OrderStatus(status) if status is not None else None)

    def list_by_client(self, client_id: int) -> list[Order]:
        return self.store.list_by_client(client_id)


__all__ = ["OrderLifecycleEngine", "OrderSpec", "BatchResult", "PaymentConfirmation", "Clock"]
