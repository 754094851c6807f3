"""Establishment ownership: claim requests and admin-managed owner links.

A request goes pending -> approved (an EstablishmentOwner link is created in
the same transaction) or pending -> rejected (no link). Admins may also
assign, edit and remove links directly.
"""
from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any

from sqlalchemy.orm import Session

from . import serializers
from .audit_events import record_audit_event
from .cache import invalidate_establishments
from .db import transaction
from .errors import ConflictError, DomainError, NotFoundError, ValidationError
from .models import OWNER_ROLES, Establishment, EstablishmentOwner, OwnershipRequest, User
from .moderation_service import require_text
from .notification_service import (
    notify_admins_new_ownership_request,
    notify_ownership_assigned,
    notify_ownership_reviewed,
    notify_ownership_submitted,
)

log = logging.getLogger(__name__)

DEFAULT_PERMISSIONS: dict[str, bool] = {
    "can_edit_info": True,
    "can_edit_pricing": True,
    "can_edit_photos": True,
    "can_edit_employees": False,
    "can_view_analytics": True,
}


def is_http_url(value: Any) -> bool:
    return isinstance(value, str) and value.lower().startswith(("http://", "https://")) and len(value) > 8


def merge_permissions(supplied: Any, base: dict[str, bool] | None = None) -> dict[str, bool]:
    merged = dict(base if base is not None else DEFAULT_PERMISSIONS)
    if supplied is None:
        return merged
    if not isinstance(supplied, dict):
        raise ValidationError("permissions must be an object", code="INVALID_PERMISSIONS")
    unknown = [k for k in supplied if k not in DEFAULT_PERMISSIONS]
    if unknown:
        raise ValidationError(
            "Unknown permission keys",
            code="INVALID_PERMISSIONS",
            invalidFields=unknown,
            allowedFields=list(DEFAULT_PERMISSIONS),
        )
    for key, value in supplied.items():
        merged[key] = bool(value)
    return merged


def _owner_role(value: Any) -> str:
    if value is None:
        return "owner"
    if value not in OWNER_ROLES:
        raise ValidationError("owner_role must be owner or manager", code="INVALID_OWNER_ROLE")
    return value


def find_link(db: Session, user_id: str, establishment_id: str) -> EstablishmentOwner | None:
    return (
        db.query(EstablishmentOwner)
        .filter(EstablishmentOwner.user_id == user_id, EstablishmentOwner.establishment_id == establishment_id)
        .first()
    )


def has_permission(db: Session, user_id: str, establishment_id: str | None, permission: str) -> bool:
    if not establishment_id:
        return False
    link = find_link(db, user_id, establishment_id)
    return bool(link and (link.permissions or {}).get(permission))


def _pending_request(db: Session, user_id: str, establishment_id: str) -> OwnershipRequest | None:
    return (
        db.query(OwnershipRequest)
        .filter(
            OwnershipRequest.user_id == user_id,
            OwnershipRequest.establishment_id == establishment_id,
            OwnershipRequest.status == "pending",
        )
        .first()
    )


def create_request(db: Session, *, user_id: str, payload: dict) -> tuple[OwnershipRequest, Establishment, bool]:
    """Returns (request, establishment, is_new_establishment)."""
    user = db.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found", code="USER_NOT_FOUND")
    if user.account_type != "establishment_owner":
        raise DomainError(
            403,
            "ACCOUNT_TYPE_REQUIRED",
            "Only establishment owners can request ownership",
            required_account_type="establishment_owner",
        )

    establishment_id = payload.get("establishment_id")
    establishment_data = payload.get("establishment_data")
    documents = payload.get("documents_urls")
    if not establishment_id and not establishment_data:
        raise ValidationError("Either establishment_id or establishment_data is required")
    if not isinstance(documents, list) or not documents:
        raise ValidationError("At least one document is required", code="DOCUMENTS_REQUIRED")
    if not all(is_http_url(d) for d in documents):
        raise ValidationError("documents_urls must be http(s) URLs", code="INVALID_DOCUMENT_URL")

    is_new = False
    if establishment_data:
        if not isinstance(establishment_data, dict):
            raise ValidationError("establishment_data must be an object")
        missing = [k for k in ("name", "address", "category_id") if not establishment_data.get(k)]
        if missing:
            raise ValidationError(
                "establishment_data must include: name, address, category_id",
                missing_fields=missing,
            )
        establishment = Establishment(
            name=str(establishment_data["name"]).strip(),
            address=establishment_data["address"],
            category_id=establishment_data["category_id"],
            zone=establishment_data.get("zone"),
            description=establishment_data.get("description"),
            phone=establishment_data.get("phone"),
            website=establishment_data.get("website"),
            opening_hours=establishment_data.get("opening_hours"),
            status="pending",
            created_by=user_id,
        )
        is_new = True
    else:
        establishment = db.get(Establishment, str(establishment_id))
        if establishment is None:
            raise NotFoundError("Establishment not found", code="ESTABLISHMENT_NOT_FOUND")
        if find_link(db, user_id, establishment.id):
            raise ConflictError("You already own this establishment", code="ALREADY_OWNER")
        if _pending_request(db, user_id, establishment.id):
            raise ConflictError("You already have a pending request for this establishment", code="REQUEST_PENDING")

    with transaction(db):
        if is_new:
            db.add(establishment)
            db.flush()
        req = OwnershipRequest(
            user_id=user_id,
            establishment_id=establishment.id,
            documents_urls=list(documents),
            verification_code=payload.get("verification_code"),
            request_message=payload.get("request_message"),
            contact_me=bool(payload.get("contact_me", False)),
            status="pending",
        )
        db.add(req)

    log.info(
        "Ownership request created request_id=%s user_id=%s establishment_id=%s new=%s",
        req.id,
        user_id,
        establishment.id,
        is_new,
    )
    notify_admins_new_ownership_request(user.pseudonym, establishment.name, req.id)
    notify_ownership_submitted(user_id, establishment.name, req.id)
    if is_new:
        invalidate_establishments()
    record_audit_event("ownership_request_created", actor_user_id=user_id, request_id=req.id)
    return req, establishment, is_new


def _with_context(db: Session, req: OwnershipRequest) -> dict:
    data = serializers.ownership_request(req)
    data["establishment"] = serializers.establishment_summary(db.get(Establishment, req.establishment_id))
    data["user"] = serializers.user_summary(db.get(User, req.user_id))
    return data


def list_my_requests(db: Session, user_id: str) -> list[dict]:
    rows = (
        db.query(OwnershipRequest)
        .filter(OwnershipRequest.user_id == user_id)
        .order_by(OwnershipRequest.created_at.desc())
        .all()
    )
    return [_with_context(db, r) for r in rows]


def list_all_requests(db: Session, status: str | None = None) -> list[dict]:
    q = db.query(OwnershipRequest)
    if status and status != "all":
        q = q.filter(OwnershipRequest.status == status)
    return [_with_context(db, r) for r in q.order_by(OwnershipRequest.created_at.desc()).all()]


def _get_request(db: Session, request_id: str) -> OwnershipRequest:
    req = db.get(OwnershipRequest, request_id)
    if req is None:
        raise NotFoundError("Ownership request not found", code="REQUEST_NOT_FOUND")
    return req


def approve_request(
    db: Session,
    request_id: str,
    *,
    admin_id: str,
    permissions: Any = None,
    owner_role: Any = None,
    admin_notes: Any = None,
) -> tuple[OwnershipRequest, EstablishmentOwner]:
    req = _get_request(db, request_id)
    if req.status != "pending":
        raise ValidationError(f"Request has already been {req.status}", code="ALREADY_REVIEWED")
    requester = db.get(User, req.user_id)
    if requester is None or requester.account_type != "establishment_owner":
        raise ValidationError("Requester is no longer an establishment owner", code="ACCOUNT_TYPE_CHANGED")
    if find_link(db, req.user_id, req.establishment_id):
        raise ConflictError("User already owns this establishment", code="ALREADY_OWNER")
    merged = merge_permissions(permissions)
    role = _owner_role(owner_role)
    notes = admin_notes.strip() if isinstance(admin_notes, str) and admin_notes.strip() else "Approved"
    establishment = db.get(Establishment, req.establishment_id)
    now = datetime.now(UTC)

    with transaction(db):
        link = EstablishmentOwner(
            user_id=req.user_id,
            establishment_id=req.establishment_id,
            owner_role=role,
            permissions=merged,
            assigned_by=admin_id,
            assigned_at=now,
        )
        db.add(link)
        if establishment is not None and establishment.status == "pending":
            establishment.status = "approved"
            establishment.updated_at = now
        req.status = "approved"
        req.admin_notes = notes
        req.reviewed_by = admin_id
        req.reviewed_at = now
        req.updated_at = now

    name = establishment.name if establishment else "establishment"
    notify_ownership_reviewed(req.user_id, True, name, req.id, notes)
    invalidate_establishments(req.establishment_id)
    record_audit_event("ownership_request_approved", actor_user_id=admin_id, request_id=req.id)
    return req, link


def reject_request(db: Session, request_id: str, *, admin_id: str, admin_notes: Any) -> OwnershipRequest:
    notes = require_text(admin_notes, "Admin notes", "NOTES_REQUIRED")
    req = _get_request(db, request_id)
    if req.status != "pending":
        raise ValidationError(f"Request has already been {req.status}", code="ALREADY_REVIEWED")
    now = datetime.now(UTC)
    with transaction(db):
        req.status = "rejected"
        req.admin_notes = notes
        req.reviewed_by = admin_id
        req.reviewed_at = now
        req.updated_at = now
    establishment = db.get(Establishment, req.establishment_id)
    notify_ownership_reviewed(req.user_id, False, establishment.name if establishment else "establishment", req.id, notes)
    record_audit_event("ownership_request_rejected", actor_user_id=admin_id, request_id=req.id)
    return req


def cancel_request(db: Session, request_id: str, *, user_id: str) -> None:
    req = _get_request(db, request_id)
    if req.user_id != user_id:
        raise DomainError(403, "FORBIDDEN", "You can only cancel your own requests")
    if req.status != "pending":
        raise ValidationError("Only pending requests can be cancelled", code="NOT_PENDING", current_status=req.status)
    with transaction(db):
        db.delete(req)
    record_audit_event("ownership_request_cancelled", actor_user_id=user_id, request_id=request_id)


# --- Admin owner management ---
def list_owners(db: Session, establishment_id: str) -> list[dict]:
    links = (
        db.query(EstablishmentOwner)
        .filter(EstablishmentOwner.establishment_id == establishment_id)
        .order_by(EstablishmentOwner.assigned_at.asc())
        .all()
    )
    out = []
    for link in links:
        data = serializers.owner_link(link)
        data["user"] = serializers.user_summary(db.get(User, link.user_id))
        out.append(data)
    return out


def assign_owner(
    db: Session,
    establishment: Establishment,
    *,
    user_id: Any,
    admin_id: str,
    permissions: Any = None,
    owner_role: Any = None,
) -> EstablishmentOwner:
    if not user_id or not isinstance(user_id, str):
        raise ValidationError("user_id is required")
    user = db.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found", code="USER_NOT_FOUND")
    if user.account_type != "establishment_owner":
        raise ValidationError("User must have an establishment_owner account", code="ACCOUNT_TYPE_REQUIRED")
    if find_link(db, user_id, establishment.id):
        raise ConflictError("User already owns this establishment", code="ALREADY_OWNER")
    merged = merge_permissions(permissions)
    role = _owner_role(owner_role)
    now = datetime.now(UTC)
    pending = _pending_request(db, user_id, establishment.id)
    with transaction(db):
        link = EstablishmentOwner(
            user_id=user_id,
            establishment_id=establishment.id,
            owner_role=role,
            permissions=merged,
            assigned_by=admin_id,
            assigned_at=now,
        )
        db.add(link)
        if pending is not None:
            pending.status = "approved"
            pending.admin_notes = "Assigned directly by an administrator"
            pending.reviewed_by = admin_id
            pending.reviewed_at = now
            pending.updated_at = now
    notify_ownership_assigned(user_id, establishment.name, establishment.id)
    record_audit_event("owner_assigned", actor_user_id=admin_id, establishment_id=establishment.id, user_id=user_id)
    return link


def remove_owner(db: Session, establishment: Establishment, user_id: str, *, admin_id: str) -> None:
    link = find_link(db, user_id, establishment.id)
    if link is None:
        raise NotFoundError("Ownership not found", code="OWNERSHIP_NOT_FOUND")
    with transaction(db):
        db.delete(link)
    record_audit_event("owner_removed", actor_user_id=admin_id, establishment_id=establishment.id, user_id=user_id)


def update_owner(
    db: Session,
    establishment: Establishment,
    user_id: str,
    *,
    admin_id: str,
    permissions: Any = None,
    owner_role: Any = None,
) -> EstablishmentOwner:
    if permissions is None and owner_role is None:
        raise ValidationError("Provide permissions and/or owner_role")
    link = find_link(db, user_id, establishment.id)
    if link is None:
        raise NotFoundError("Ownership not found", code="OWNERSHIP_NOT_FOUND")
    new_perms = merge_permissions(permissions, base=link.permissions or DEFAULT_PERMISSIONS) if permissions is not None else None
    new_role = _owner_role(owner_role) if owner_role is not None else None
    with transaction(db):
        if new_perms is not None:
            link.permissions = new_perms
        if new_role is not None:
            link.owner_role = new_role
    record_audit_event("owner_updated", actor_user_id=admin_id, establishment_id=establishment.id, user_id=user_id)
    return link


def owned_establishments(db: Session, user_id: str) -> list[dict]:
    links = db.query(EstablishmentOwner).filter(EstablishmentOwner.user_id == user_id).all()
    out = []
    for link in links:
        data = serializers.owner_link(link)
        data["establishment"] = serializers.establishment_summary(db.get(Establishment, link.establishment_id))
        out.append(data)
    return out
