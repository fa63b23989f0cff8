"""Domain services: pricing, vendor whitelist, order lifecycle, reassignment."""

from printshop.services.lifecycle import BatchResult, OrderLifecycleEngine, OrderSpec, PaymentConfirmation
from printshop.services.order_store import OrderStore
from printshop.services.payments import PaymentLinkProvider
from printshop.services.pricing import CatalogConfig, PricingCatalog, Quote, Rate
from printshop.services.reassignment import ReassignmentResult, VendorReassignmentHook
from printshop.services.vendor_directory import VendorDirectory

__all__ = [
    "BatchResult",
    "CatalogConfig",
    "OrderLifecycleEngine",
    "OrderSpec",
    "OrderStore",
    "PaymentConfirmation",
    "PaymentLinkProvider",
    "PricingCatalog",
    "Quote",
    "Rate",
    "ReassignmentResult",
    "VendorDirectory",
    "VendorReassignmentHook",
]
