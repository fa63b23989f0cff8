# printshop/models/vendor.py
from __future__ import annotations

from sqlalchemy import Boolean, Column, DateTime, Integer, String
from sqlalchemy.orm import validates

from printshop.models.base import Base, utc_now


def normalize_vendor_name(name: str | None) -> str:
    """Vendor identity is case-insensitive: trimmed and lower-cased."""
    return (name or "").strip().lower()


class Vendor(Base):
    __tablename__ = "vendors"

    id = Column(Integer, primary_key=True)
    name = Column(String(128), nullable=False, unique=True)
    is_whitelisted = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utc_now)
    created_by_admin_id = Column(String(64), nullable=True)

    @validates("name")
    def _validate_name(self, _k: str, v: str) -> str:
        v = normalize_vendor_name(v)
        if not v:
            raise ValueError("vendor name must be non-empty")
        if len(v) > 128:
            raise ValueError("vendor name length must be <= 128")
        return v

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Vendor id={self.id} name={self.name!r} whitelisted={self.is_whitelisted}>"


__all__ = ["Vendor", "normalize_vendor_name"]
