# printshop/services/reassignment.py
from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from printshop.core.db import session_scope
from printshop.core.exceptions import NotFoundError
from printshop.core.logging import get_logger
from printshop.models.base import utc_now
from printshop.models.client import Client
from printshop.models.order import Order, OrderStatus
from printshop.models.vendor import normalize_vendor_name
from printshop.services.order_store import OrderStore
from printshop.services.vendor_directory import VendorDirectory

log = get_logger(__name__)

# only orders that have not started work can be relaxed
_RELAXABLE = (OrderStatus.PENDING, OrderStatus.VERIFYING)


@dataclass
class ReassignmentResult:
    client_id: int
    vendor_name: Optional[str]
    whitelisted: bool
    relaxed_orders: int


class VendorReassignmentHook:
    """
    Moves a client to another vendor. When the new vendor is whitelisted,
    the client's open unpaid orders drop their prepayment requirement.
    Gates are never tightened again and closed orders are left alone.
    """

    def __init__(self, store: OrderStore, directory: VendorDirectory, *, clock: Callable[[], datetime] = utc_now):
        self.store = store
        self.directory = directory
        self.clock = clock

    def reassign(self, client_id: int, vendor_name: Optional[str], actor_id: Optional[str] = None) -> ReassignmentResult:
        key = normalize_vendor_name(vendor_name) or None
        with session_scope(self.store.session_factory) as db:
            client = db.get(Client, client_id)
            if client is None:
                raise NotFoundError("Client not found", extra={"client_id": client_id})
            client.vendor_name = key

        whitelisted = self.directory.is_whitelisted(key)
        relaxed = 0
        if whitelisted:
            relaxed = self.store.bulk_update(
                {
                    "vendor_whitelisted": True,
                    "payment_required": False,
                    "payment_deadline": None,
                    "updated_at": self.clock(),
                },
                Order.client_id == client_id,
                Order.paid_at.is_(None),
                Order.status.in_(_RELAXABLE),
                Order.payment_required.is_(True),
            )

        log.info(
            "client_vendor_reassigned",
            client_id=client_id,
            vendor=key,
            whitelisted=whitelisted,
            relaxed_orders=relaxed,
            actor_id=actor_id,
        )
        return ReassignmentResult(client_id=client_id, vendor_name=key, whitelisted=whitelisted, relaxed_orders=relaxed)


__all__ = ["VendorReassignmentHook", "ReassignmentResult"]
