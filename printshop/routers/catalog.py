"""
Pricing catalog endpoint for the order form.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from printshop.core.dependencies import Services, get_services

router = APIRouter()


@router.get("/catalog/pricing", response_model=dict[str, Any])
def get_pricing_catalog(services: Services = Depends(get_services)):
    """Product -> materials map, full rate table, client tax rate, currency and basis labels."""
    return services.catalog.as_catalog()
