# printshop/services/payments.py
from __future__ import annotations

from datetime import datetime

from printshop.core.config import Settings
from printshop.models.order import Order, OrderStatus


class PaymentLinkProvider:
    """Builds pay-page links and answers whether the pay page accepts an order right now."""

    def __init__(self, base_url: str):
        self.base_url = (base_url or "").rstrip("/")

    @classmethod
    def from_settings(cls, settings: Settings) -> PaymentLinkProvider:
        return cls(settings.public_url)

    def link_for(self, order_id: int) -> str:
        return f"{self.base_url}/pay/{int(order_id)}"

    def can_pay(self, order: Order, now: datetime) -> bool:
        # prepaid: pending and inside the window; postpaid: once done
        if order.status == OrderStatus.CANCELLED or order.paid_at is not None:
            return False
        if order.payment_required:
            return order.status == OrderStatus.PENDING and not order.deadline_passed(now)
        return order.status == OrderStatus.DONE


__all__ = ["PaymentLinkProvider"]
