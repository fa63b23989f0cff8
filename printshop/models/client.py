# printshop/models/client.py
"""
Client: the ordering party. Registration and approval belong to an outside
collaborator; the order core reads `vendor_name` and `is_approved` and
writes `vendor_name` only through the vendor reassignment hook.
"""

from __future__ import annotations

from sqlalchemy import Boolean, Column, DateTime, Integer, String
from sqlalchemy.orm import validates

from printshop.models.base import Base, utc_now


class Client(Base):
    __tablename__ = "clients"

    id = Column(Integer, primary_key=True)
    full_name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, unique=True)
    phone = Column(String(32), nullable=True)
    vendor_name = Column(String(128), nullable=True, index=True)
    is_approved = Column(Boolean, nullable=False, default=False)
    approved_at = Column(DateTime, nullable=True)
    approved_by = Column(String(64), nullable=True)
    created_at = Column(DateTime, nullable=False, default=utc_now)

    @validates("email")
    def _validate_email(self, _k: str, v: str) -> str:
        v = (v or "").strip().lower()
        if not v:
            raise ValueError("email must be non-empty")
        return v

    @validates("vendor_name")
    def _validate_vendor_name(self, _k: str, v: str | None) -> str | None:
        v = (v or "").strip().lower()
        return v or None

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Client id={self.id} email={self.email!r} vendor={self.vendor_name!r}>"


__all__ = ["Client"]
