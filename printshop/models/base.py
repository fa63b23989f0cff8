# printshop/models/base.py
"""
Declarative base (SQLAlchemy 2.x) shared by every PrintShop model.

Timestamps are naive UTC throughout; the columns are DateTime without
timezone=True and the lifecycle engine's clock hands out the same shape.
"""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import MetaData
from sqlalchemy.orm import DeclarativeBase


def utc_now() -> datetime:
    """Naive UTC "now"."""
    return datetime.now(UTC).replace(tzinfo=None)


# Naming conventions keep constraint/index names stable for alembic.
NAMING_CONVENTIONS: dict[str, str] = {
    "ix": "ix__%(table_name)s__%(column_0_N_name)s",
    "uq": "uq__%(table_name)s__%(column_0_N_name)s",
    "ck": "ck__%(table_name)s__%(constraint_name)s",
    "fk": "fk__%(table_name)s__%(column_0_N_name)s__%(referred_table_name)s",
    "pk": "pk__%(table_name)s",
}


class Base(DeclarativeBase):
    """Root declarative base with naming conventions."""

    metadata = MetaData(naming_convention=NAMING_CONVENTIONS)

    def __repr__(self) -> str:  # pragma: no cover
        cols = []
        for k in self.__mapper__.c.keys():
            v = getattr(self, k, None)
            if isinstance(v, str) and len(v) > 64:
                v = v[:64] + "…"
            cols.append(f"{k}={v!r}")
        return f"<{self.__class__.__name__}({', '.join(cols)})>"


__all__ = ["Base", "NAMING_CONVENTIONS", "utc_now"]
