# printshop/services/vendor_directory.py
from __future__ import annotations

from collections.abc import Iterable
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.orm import sessionmaker

from printshop.core.db import session_scope
from printshop.core.exceptions import ConflictError, InvalidSpec, NotFoundError, VendorInUse
from printshop.core.logging import get_logger
from printshop.models.client import Client
from printshop.models.vendor import Vendor, normalize_vendor_name

log = get_logger(__name__)


class VendorDirectory:
    """
    Vendor whitelist lookups and administration.

    Names are compared case-insensitively; a blank or unknown name is never
    whitelisted. Each call runs in its own short transaction.
    """

    def __init__(self, session_factory: sessionmaker):
        self._sf = session_factory

    # ------------------------ lookups ------------------------
    def is_whitelisted(self, name: Optional[str]) -> bool:
        key = normalize_vendor_name(name)
        if not key:
            return False
        with session_scope(self._sf) as db:
            flag = db.execute(select(Vendor.is_whitelisted).where(Vendor.name == key)).scalar_one_or_none()
        return bool(flag)

    def get(self, vendor_id: int) -> Vendor:
        with session_scope(self._sf) as db:
            vendor = db.get(Vendor, vendor_id)
            if vendor is None:
                raise NotFoundError("Vendor not found", extra={"vendor_id": vendor_id})
            return vendor

    def get_by_name(self, name: Optional[str]) -> Optional[Vendor]:
        key = normalize_vendor_name(name)
        if not key:
            return None
        with session_scope(self._sf) as db:
            return db.execute(select(Vendor).where(Vendor.name == key)).scalar_one_or_none()

    def list_all(self) -> list[Vendor]:
        with session_scope(self._sf) as db:
            return list(db.execute(select(Vendor).order_by(Vendor.name.asc())).scalars())

    def list_whitelisted_names(self) -> list[str]:
        with session_scope(self._sf) as db:
            rows = db.execute(select(Vendor.name).where(Vendor.is_whitelisted.is_(True)).order_by(Vendor.name.asc()))
            return [r for (r,) in rows]

    # ------------------------ mutations ------------------------
    def upsert(self, name: Optional[str], whitelisted: bool = True, actor_id: Optional[str] = None) -> Vendor:
        key = normalize_vendor_name(name)
        if not key:
            raise InvalidSpec("Vendor name is required", extra={"field": "name"})
        with session_scope(self._sf) as db:
            vendor = db.execute(select(Vendor).where(Vendor.name == key)).scalar_one_or_none()
            if vendor is None:
                vendor = Vendor(name=key, is_whitelisted=bool(whitelisted), created_by_admin_id=actor_id)
                db.add(vendor)
                created = True
            else:
                vendor.is_whitelisted = bool(whitelisted)
                created = False
            db.flush()
        log.info("vendor_upserted", vendor=key, whitelisted=bool(whitelisted), created=created, actor_id=actor_id)
        return vendor

    def update(
        self,
        vendor_id: int,
        *,
        name: Optional[str] = None,
        whitelisted: Optional[bool] = None,
    ) -> Vendor:
        with session_scope(self._sf) as db:
            vendor = db.get(Vendor, vendor_id)
            if vendor is None:
                raise NotFoundError("Vendor not found", extra={"vendor_id": vendor_id})
            if name is not None:
                key = normalize_vendor_name(name)
                if not key:
                    raise InvalidSpec("Vendor name is required", extra={"field": "name"})
                clash = db.execute(
                    select(Vendor.id).where(Vendor.name == key, Vendor.id != vendor_id)
                ).scalar_one_or_none()
                if clash is not None:
                    raise ConflictError("Vendor name already exists", extra={"name": key})
                vendor.name = key
            if whitelisted is not None:
                vendor.is_whitelisted = bool(whitelisted)
            db.flush()
        log.info("vendor_updated", vendor_id=vendor_id, name=vendor.name, whitelisted=vendor.is_whitelisted)
        return vendor

    def remove(self, vendor_id: int, *, hard: bool = False) -> Optional[Vendor]:
        """
        Soft remove revokes the whitelist flag and returns the vendor.
        Hard remove deletes the row, refused with VendorInUse while any
        client still carries the vendor designation.
        """
        with session_scope(self._sf) as db:
            vendor = db.get(Vendor, vendor_id)
            if vendor is None:
                raise NotFoundError("Vendor not found", extra={"vendor_id": vendor_id})
            if not hard:
                vendor.is_whitelisted = False
                db.flush()
                log.info("vendor_whitelist_revoked", vendor_id=vendor_id, name=vendor.name)
                return vendor

            in_use = db.execute(
                select(func.count(Client.id)).where(func.lower(Client.vendor_name) == vendor.name)
            ).scalar_one()
            if in_use:
                raise VendorInUse(
                    "Vendor is still assigned to clients",
                    extra={"vendor_id": vendor_id, "clients": int(in_use)},
                )
            db.delete(vendor)
        log.info("vendor_deleted", vendor_id=vendor_id)
        return None

    def seed_defaults(self, names: Iterable[str]) -> int:
        """Insert missing default vendors as whitelisted; existing rows are left alone."""
        created = 0
        with session_scope(self._sf) as db:
            for raw in names:
                key = normalize_vendor_name(raw)
                if not key:
                    continue
                exists = db.execute(select(Vendor.id).where(Vendor.name == key)).scalar_one_or_none()
                if exists is None:
                    db.add(Vendor(name=key, is_whitelisted=True))
                    created += 1
        if created:
            log.info("vendors_seeded", created=created)
        return created


__all__ = ["VendorDirectory"]
