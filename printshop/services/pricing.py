# printshop/services/pricing.py
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from types import MappingProxyType
from typing import Any, Optional

from printshop.core.config import Settings
from printshop.core.exceptions import InvalidSpec, UnknownRate
from printshop.models.order import PricingBasis

BASIS_LABELS = {PricingBasis.AREA.value: "per cm²", PricingBasis.UNIT.value: "per item"}


def _to_decimal(v: Any, field_name: str) -> Decimal:
    if v is None or v == "":
        return Decimal("0")
    try:
        d = v if isinstance(v, Decimal) else Decimal(str(v))
    except (InvalidOperation, ValueError):
        raise InvalidSpec(f"{field_name} must be a number", extra={"field": field_name})
    if not d.is_finite():
        raise InvalidSpec(f"{field_name} must be a finite number", extra={"field": field_name})
    return d


# =========================
# Catalog configuration
# =========================
@dataclass(frozen=True)
class Rate:
    amount: Decimal
    basis: PricingBasis

    def as_dict(self) -> dict[str, float]:
        key = "per_cm2" if self.basis == PricingBasis.AREA else "per_item"
        return {key: float(self.amount)}


def _area(amount: str) -> Rate:
    return Rate(Decimal(amount), PricingBasis.AREA)


def _unit(amount: str) -> Rate:
    return Rate(Decimal(amount), PricingBasis.UNIT)


DEFAULT_RATES: dict[str, dict[str, Rate]] = {
    "spanduk": {
        "Flexi China 280gsm": _area("0.9"),
        "Flexi Korea 340gsm": _area("1.2"),
        "Flexi Frontlit 440gsm": _area("1.5"),
        "Vinyl Frontlit 510gsm": _area("1.8"),
    },
    "stiker": {
        "Stiker Vinyl Glossy": _area("1.5"),
        "Stiker Vinyl Doff": _area("1.5"),
        "Stiker HVS": _area("0.7"),
        "Stiker Transparan": _area("1.8"),
        "Stiker One Way": _area("2.0"),
    },
    "x-banner": {
        "PVC 260gsm": _area("1.4"),
        "PVC 300gsm": _area("1.6"),
        "Luster Photo 230gsm": _area("1.8"),
    },
    "roll-up": {
        "Polypropylene 200µ": _area("1.8"),
        "PVC Grey Back 280gsm": _area("2.1"),
    },
    "y-banner": {
        "PVC 260gsm": _area("1.4"),
        "PVC 300gsm": _area("1.6"),
    },
    "t-banner": {
        "PVC 260gsm": _area("1.4"),
        "PVC 300gsm": _area("1.6"),
    },
    "baliho": {
        "Flexi Korea 340gsm": _area("1.6"),
        "Flexi Frontlit 440gsm": _area("1.9"),
    },
    "brosur": {
        "Art Paper 120gsm": _unit("800"),
        "Art Paper 150gsm": _unit("1000"),
        "Art Carton 210gsm": _unit("1500"),
    },
    "flyer": {
        "Art Paper 120gsm": _unit("700"),
        "HVS 100gsm": _unit("500"),
        "Ivory 210gsm": _unit("1200"),
    },
    "kartu_nama": {
        "Art Carton 260gsm": _unit("350"),
        "Art Carton 310gsm": _unit("450"),
        "Ivory 260gsm": _unit("400"),
    },
}


def _freeze(rates: Mapping[str, Mapping[str, Rate]]) -> Mapping[str, Mapping[str, Rate]]:
    return MappingProxyType(
        {str(pt).strip().lower(): MappingProxyType({str(m).strip(): r for m, r in mats.items()}) for pt, mats in rates.items()}
    )


@dataclass(frozen=True)
class CatalogConfig:
    """Read-only rate table plus tax/currency knobs; built once at startup."""

    rates: Mapping[str, Mapping[str, Rate]] = field(default_factory=lambda: DEFAULT_RATES)
    client_tax_rate: Decimal = Decimal("0")
    purchase_tax_rate: Decimal = Decimal("0.11")
    currency: str = "IDR"
    minor_units: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "rates", _freeze(self.rates))
        if self.minor_units < 0:
            raise ValueError("minor_units must be >= 0")

    @classmethod
    def from_settings(cls, settings: Settings, rates: Optional[Mapping[str, Mapping[str, Rate]]] = None) -> CatalogConfig:
        return cls(
            rates=rates if rates is not None else DEFAULT_RATES,
            client_tax_rate=Decimal(settings.CLIENT_TAX_RATE),
            purchase_tax_rate=Decimal(settings.PURCHASE_TAX_RATE),
            currency=settings.CURRENCY,
            minor_units=settings.CURRENCY_MINOR_UNITS,
        )


@dataclass(frozen=True)
class Quote:
    unit_price: Decimal
    basis: PricingBasis
    subtotal: Decimal
    tax: Decimal
    total: Decimal
    tax_rate: Decimal
    currency: str
    unknown_rate: bool = False

    def require_rate(self) -> Quote:
        if self.unknown_rate:
            raise UnknownRate("No catalog rate for this product and material", code="UNKNOWN_RATE")
        return self


# =========================
# Pricing catalog
# =========================
class PricingCatalog:
    """
    Pure price lookup over a CatalogConfig.

    Area rule: rate * width_cm * height_cm * quantity.
    Unit rule: rate * quantity.
    The subtotal is rounded half-up to the currency's minor units first; tax
    is computed on that rounded subtotal and rounded the same way.
    """

    def __init__(self, config: Optional[CatalogConfig] = None):
        self.config = config or CatalogConfig()
        self._exp = Decimal(1).scaleb(-self.config.minor_units)

    def _round(self, v: Decimal) -> Decimal:
        return v.quantize(self._exp, rounding=ROUND_HALF_UP)

    def lookup(self, product_type: Optional[str], material: Optional[str]) -> Optional[Rate]:
        pt = (product_type or "").strip().lower()
        mat = (material or "").strip()
        return self.config.rates.get(pt, {}).get(mat)

    def quote(
        self,
        product_type: Optional[str],
        material: Optional[str],
        width_cm: Any = None,
        height_cm: Any = None,
        quantity: Any = 1,
        tax_rate: Optional[Decimal] = None,
    ) -> Quote:
        rate_of_tax = Decimal(self.config.client_tax_rate if tax_rate is None else tax_rate)
        rate = self.lookup(product_type, material)
        if rate is None:
            zero = self._round(Decimal("0"))
            return Quote(
                unit_price=Decimal("0"),
                basis=PricingBasis.UNIT,
                subtotal=zero,
                tax=zero,
                total=zero,
                tax_rate=rate_of_tax,
                currency=self.config.currency,
                unknown_rate=True,
            )

        qty = _to_decimal(quantity, "quantity")
        if qty != qty.to_integral_value() or qty < 1:
            raise InvalidSpec("quantity must be a whole number >= 1", extra={"field": "quantity"})

        if rate.basis == PricingBasis.AREA:
            w = _to_decimal(width_cm, "width_cm")
            h = _to_decimal(height_cm, "height_cm")
            if w <= 0 or h <= 0:
                raise InvalidSpec(
                    "width_cm and height_cm must be > 0 for area-priced products",
                    extra={"field": "width_cm" if w <= 0 else "height_cm"},
                )
            raw = rate.amount * w * h * qty
        else:
            raw = rate.amount * qty

        subtotal = self._round(raw)
        tax = self._round(subtotal * rate_of_tax)
        return Quote(
            unit_price=rate.amount,
            basis=rate.basis,
            subtotal=subtotal,
            tax=tax,
            total=subtotal + tax,
            tax_rate=rate_of_tax,
            currency=self.config.currency,
        )

    def purchase_quote(self, product_type, material, width_cm=None, height_cm=None, quantity=1) -> Quote:
        """Quote for administrative purchases, taxed at the purchase rate."""
        return self.quote(product_type, material, width_cm, height_cm, quantity, tax_rate=self.config.purchase_tax_rate)

    def materials(self) -> dict[str, list[str]]:
        return {pt: list(mats.keys()) for pt, mats in self.config.rates.items()}

    def as_catalog(self) -> dict[str, Any]:
        return {
            "materials": self.materials(),
            "pricing": {pt: {m: r.as_dict() for m, r in mats.items()} for pt, mats in self.config.rates.items()},
            "tax_rate": float(self.config.client_tax_rate),
            "currency": self.config.currency,
            "basis": dict(BASIS_LABELS),
        }


__all__ = ["Rate", "CatalogConfig", "Quote", "PricingCatalog", "DEFAULT_RATES", "BASIS_LABELS"]
