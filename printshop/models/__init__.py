"""Database models package: importing it registers every table on Base.metadata."""

from printshop.models.base import Base, utc_now
from printshop.models.client import Client
from printshop.models.order import (
    ALLOWED_TRANSITIONS,
    TRANSITIONS,
    BillingStatus,
    Order,
    OrderAction,
    OrderStatus,
    PricingBasis,
    resolve_transition,
)
from printshop.models.vendor import Vendor, normalize_vendor_name

__all__ = [
    "Base",
    "utc_now",
    "Client",
    "Vendor",
    "normalize_vendor_name",
    "Order",
    "OrderStatus",
    "OrderAction",
    "PricingBasis",
    "BillingStatus",
    "TRANSITIONS",
    "ALLOWED_TRANSITIONS",
    "resolve_transition",
]
