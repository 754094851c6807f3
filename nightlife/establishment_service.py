"""Establishment listings, submissions, edits and consumable menus."""
from __future__ import annotations

import hashlib
import json
from datetime import UTC, datetime
from typing import Any

from sqlalchemy.orm import Session

from . import serializers
from .audit_events import record_audit_event
from .cache import CacheKeys, CacheTTL, cache_get, cache_set, invalidate_establishments
from .db import transaction
from .employment_service import current_establishment_ids, working_at
from .errors import DomainError, NotFoundError, ValidationError
from .models import (
    MODERATION_STATUSES,
    ConsumableTemplate,
    Employee,
    EmploymentHistory,
    Establishment,
    EstablishmentCategory,
    EstablishmentConsumable,
    EstablishmentOwner,
    OwnershipRequest,
    User,
)
from .moderation_service import enqueue
from .notification_service import notify_admins_pending_content, notify_content_pending_review
from .ownership_service import find_link
from .pagination import PageRequest, page_offset
from .roles import is_admin, is_staff

ADMIN_EDITABLE_FIELDS = (
    "name",
    "address",
    "description",
    "phone",
    "website",
    "logo_url",
    "opening_hours",
    "services",
    "category_id",
    "zone",
    "grid_row",
    "grid_col",
    "ladydrink",
    "barfine",
    "rooms",
    "location",
    "status",
    "pricing",
)

# Owner edits are gated per field group by the link's permissions.
PERMISSION_GROUPS: dict[str, tuple[str, ...]] = {
    "can_edit_info": (
        "name",
        "address",
        "description",
        "phone",
        "website",
        "opening_hours",
        "services",
        "category_id",
        "zone",
        "location",
    ),
    "can_edit_pricing": ("ladydrink", "barfine", "rooms", "pricing"),
    "can_edit_photos": ("logo_url",),
}
SUBMITTABLE_FIELDS = tuple(f for group in PERMISSION_GROUPS.values() for f in group)


def check_fields(data: dict, allowed: tuple[str, ...]) -> None:
    invalid = [k for k in data if k not in allowed]
    if invalid:
        raise ValidationError(
            "Invalid fields provided",
            code="INVALID_FIELDS",
            invalidFields=invalid,
            allowedFields=list(allowed),
        )


def _check_status(data: dict) -> None:
    if "status" in data and data["status"] not in MODERATION_STATUSES:
        raise ValidationError(
            "Invalid status",
            code="INVALID_STATUS",
            allowedStatuses=list(MODERATION_STATUSES),
        )


def _apply(est: Establishment, data: dict) -> None:
    for key, value in data.items():
        setattr(est, key, value)
    est.updated_at = datetime.now(UTC)


def _fingerprint(params: dict) -> str:
    raw = json.dumps(params, sort_keys=True, default=str)
    return hashlib.sha1(raw.encode("utf-8")).hexdigest()[:16]


def list_public(db: Session, *, page_req: PageRequest, category_id: Any = None, zone: str | None = None, q: str | None = None) -> dict:
    params = {
        "page": page_req["page"],
        "size": page_req["size"],
        "category_id": category_id,
        "zone": zone,
        "q": q,
    }
    key = CacheKeys.establishments_list(_fingerprint(params))
    cached = cache_get(key)
    if cached is not None:
        return cached
    query = db.query(Establishment).filter(Establishment.status == "approved")
    if category_id not in (None, ""):
        try:
            query = query.filter(Establishment.category_id == int(category_id))
        except (TypeError, ValueError) as e:
            raise ValidationError("category_id must be an integer") from e
    if zone:
        query = query.filter(Establishment.zone == zone)
    if q:
        query = query.filter(Establishment.name.ilike(f"%{q}%"))
    total = query.count()
    rows = query.order_by(Establishment.name.asc()).offset(page_offset(page_req)).limit(page_req["size"]).all()
    result = {"items": [serializers.establishment(e) for e in rows], "total": total}
    cache_set(key, result, CacheTTL.LISTINGS)
    return result


def get_public(db: Session, est: Establishment, *, role: str | None) -> dict:
    if est.status != "approved" and not is_staff(role):
        raise NotFoundError("Establishment not found", code="ESTABLISHMENT_NOT_FOUND")
    key = CacheKeys.establishment(est.id)
    cached = cache_get(key) if est.status == "approved" else None
    if cached is not None:
        return cached
    data = serializers.establishment(est)
    data["employee_count"] = (
        db.query(Employee)
        .filter(
            working_at(est.id),
            Employee.status == "approved",
            Employee.is_hidden.is_(False),
        )
        .count()
    )
    if est.status == "approved":
        cache_set(key, data, CacheTTL.DETAIL)
    return data


def list_categories(db: Session) -> list[dict]:
    cached = cache_get(CacheKeys.CATEGORIES)
    if cached is not None:
        return cached
    rows = db.query(EstablishmentCategory).order_by(EstablishmentCategory.id.asc()).all()
    data = [serializers.category(c) for c in rows]
    cache_set(CacheKeys.CATEGORIES, data, CacheTTL.CATEGORIES)
    return data


def create_establishment(db: Session, *, user_id: str, role: str, data: dict) -> Establishment:
    check_fields(data, SUBMITTABLE_FIELDS)
    name = data.get("name")
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("name is required")
    if data.get("category_id") is not None and db.get(EstablishmentCategory, data["category_id"]) is None:
        raise ValidationError("Unknown category", code="INVALID_CATEGORY")
    status = "approved" if is_admin(role) else "pending"
    with transaction(db):
        est = Establishment(status=status, created_by=user_id)
        _apply(est, {**data, "name": name.strip()})
        db.add(est)
        db.flush()
        if status == "pending":
            enqueue(db, "establishment", est.id, user_id)

    if status == "pending":
        submitter = db.get(User, user_id)
        notify_admins_pending_content("establishment", est.name, submitter.pseudonym if submitter else "A user", est.id)
        notify_content_pending_review(user_id, "establishment", est.name, est.id)
    invalidate_establishments()
    record_audit_event("establishment_created", actor_user_id=user_id, establishment_id=est.id, status=status)
    return est


def owner_update(db: Session, est: Establishment, *, user_id: str, role: str, data: dict) -> Establishment:
    check_fields(data, SUBMITTABLE_FIELDS)
    if not is_admin(role):
        link = find_link(db, user_id, est.id)
        if link is None:
            raise DomainError(403, "FORBIDDEN", "You do not manage this establishment")
        perms = link.permissions or {}
        denied = [
            field
            for perm, fields in PERMISSION_GROUPS.items()
            if not perms.get(perm)
            for field in fields
            if field in data
        ]
        if denied:
            raise DomainError(403, "PERMISSION_DENIED", "Missing permission for some fields", deniedFields=denied)
    if "name" in data and (not isinstance(data["name"], str) or not data["name"].strip()):
        raise ValidationError("name must not be empty")
    with transaction(db):
        _apply(est, data)
    invalidate_establishments(est.id)
    record_audit_event("establishment_updated", actor_user_id=user_id, establishment_id=est.id)
    return est


def admin_update(db: Session, est: Establishment, *, admin_id: str, data: dict) -> Establishment:
    with transaction(db):
        _apply(est, data)
    invalidate_establishments(est.id)
    record_audit_event("establishment_admin_updated", actor_user_id=admin_id, establishment_id=est.id, fields=sorted(data))
    return est


def validate_admin_payload(data: Any) -> dict:
    """Field and status checks that run before the establishment is looked up."""
    if not isinstance(data, dict):
        raise ValidationError("JSON object body required")
    check_fields(data, ADMIN_EDITABLE_FIELDS)
    _check_status(data)
    return data


def admin_list(db: Session, status: str | None) -> list[dict]:
    q = db.query(Establishment)
    if status and status != "all":
        q = q.filter(Establishment.status == status)
    rows = q.order_by(Establishment.created_at.desc()).all()
    out = []
    for e in rows:
        data = serializers.establishment(e)
        data["creator"] = serializers.user_summary(db.get(User, e.created_by)) if e.created_by else None
        out.append(data)
    return out


def delete_establishment(db: Session, est: Establishment, *, admin_id: str) -> dict:
    """Hard delete; dependent rows are removed or detached in the same transaction."""
    snapshot = serializers.establishment(est)
    with transaction(db):
        db.query(EstablishmentConsumable).filter(EstablishmentConsumable.establishment_id == est.id).delete()
        db.query(EstablishmentOwner).filter(EstablishmentOwner.establishment_id == est.id).delete()
        db.query(OwnershipRequest).filter(OwnershipRequest.establishment_id == est.id).delete()
        affected = db.query(Employee).filter(Employee.current_establishment_id == est.id).all()
        db.query(EmploymentHistory).filter(EmploymentHistory.establishment_id == est.id).delete()
        db.flush()
        for emp in affected:
            remaining = current_establishment_ids(db, emp.id)
            emp.current_establishment_id = remaining[0] if remaining else None
        db.delete(est)
    invalidate_establishments(snapshot["id"])
    record_audit_event("establishment_deleted", actor_user_id=admin_id, establishment_id=snapshot["id"])
    return snapshot


# --- Consumables ---
def list_consumables(db: Session, est: Establishment) -> list[dict]:
    rows = (
        db.query(EstablishmentConsumable)
        .filter(EstablishmentConsumable.establishment_id == est.id)
        .order_by(EstablishmentConsumable.id.asc())
        .all()
    )
    return [serializers.consumable(r, db.get(ConsumableTemplate, r.consumable_id)) for r in rows]


def _price(value: Any) -> float | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
        raise ValidationError("price must be a non-negative number")
    return float(value)


def add_consumable(db: Session, est: Establishment, data: dict) -> EstablishmentConsumable:
    consumable_id = data.get("consumable_id")
    if consumable_id is None:
        raise ValidationError("consumable_id is required")
    if db.get(ConsumableTemplate, consumable_id) is None:
        raise NotFoundError("Consumable not found", code="CONSUMABLE_NOT_FOUND")
    with transaction(db):
        row = EstablishmentConsumable(
            establishment_id=est.id,
            consumable_id=consumable_id,
            price=_price(data.get("price")),
            is_available=bool(data.get("is_available", True)),
        )
        db.add(row)
    invalidate_establishments(est.id)
    return row


def _get_consumable(db: Session, est: Establishment, cid: int) -> EstablishmentConsumable:
    row = db.get(EstablishmentConsumable, cid)
    if row is None or row.establishment_id != est.id:
        raise NotFoundError("Consumable not found", code="CONSUMABLE_NOT_FOUND")
    return row


def update_consumable(db: Session, est: Establishment, cid: int, data: dict) -> EstablishmentConsumable:
    row = _get_consumable(db, est, cid)
    with transaction(db):
        if "price" in data:
            row.price = _price(data["price"])
        if "is_available" in data:
            row.is_available = bool(data["is_available"])
    invalidate_establishments(est.id)
    return row


def delete_consumable(db: Session, est: Establishment, cid: int) -> None:
    row = _get_consumable(db, est, cid)
    with transaction(db):
        db.delete(row)
    invalidate_establishments(est.id)
