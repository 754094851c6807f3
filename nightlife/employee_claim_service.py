"""Linking user accounts to employee profiles.

Two entry points create a pending `employee_claim` queue item:

 - a user creates their own profile (linked immediately, approval makes it public)
 - a user claims an existing, unlinked profile (approval creates the link)

Approval and rejection follow the moderation queue rules: only pending items
can be reviewed and rejection needs moderator notes.
"""
from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any

from sqlalchemy.orm import Session

from . import serializers
from .audit_events import record_audit_event
from .cache import invalidate_employees
from .comment_service import approved_comments, average_rating
from .db import transaction
from .employment_service import employment_history, get_employee, reassign, target_establishments, validate_profile
from .errors import ConflictError, NotFoundError, ValidationError
from .models import Employee, ModerationQueueItem, User
from .moderation_service import require_text
from .notification_service import (
    notify_admins_new_employee_claim,
    notify_content_pending_review,
    notify_employee_claim_reviewed,
)
from .ownership_service import is_http_url

log = logging.getLogger(__name__)

CLAIM_ITEM_TYPE = "employee_claim"
SELF_PROFILE = "self_profile"
CLAIM_EXISTING = "claim"
MIN_CLAIM_MESSAGE = 10
MIN_REJECTION_NOTES = 10
MAX_PROOF_URLS = 5


def linked_profile_of(db: Session, user_id: str) -> Employee | None:
    return db.query(Employee).filter(Employee.user_id == user_id).first()


def _ensure_not_linked(db: Session, user_id: str) -> None:
    if linked_profile_of(db, user_id) is not None:
        raise ConflictError("You already have a linked employee profile", code="ALREADY_LINKED")


def _claim_type(item: ModerationQueueItem) -> str:
    return (item.request_metadata or {}).get("claim_type", CLAIM_EXISTING)


def create_own_profile(db: Session, *, user_id: str, data: dict) -> Employee:
    """Create a pending profile already linked to `user_id`."""
    _ensure_not_linked(db, user_id)
    fields = validate_profile(data, partial=False)
    est_ids = target_establishments(db, data, fields.get("is_freelance", False)) or []
    user = db.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found", code="USER_NOT_FOUND")
    with transaction(db):
        emp = Employee(status="pending", created_by=user_id, user_id=user_id, is_self_profile=True, **fields)
        db.add(emp)
        db.flush()
        reassign(db, emp, est_ids, user_id=user_id)
        user.account_type = "employee"
        item = ModerationQueueItem(
            item_type=CLAIM_ITEM_TYPE,
            item_id=emp.id,
            submitted_by=user_id,
            status="pending",
            request_metadata={"claim_type": SELF_PROFILE, "message": "I am creating my own employee profile"},
        )
        db.add(item)

    notify_admins_new_employee_claim(user.pseudonym, emp.name, item.id, self_profile=True)
    notify_content_pending_review(user_id, "employee", emp.name, emp.id)
    invalidate_employees()
    record_audit_event("employee_self_profile_created", actor_user_id=user_id, employee_id=emp.id)
    log.info("Self-profile %s created by %s", emp.id, user_id)
    return emp


def _proof_urls(value: Any) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list) or len(value) > MAX_PROOF_URLS:
        raise ValidationError(f"verification_proof must be a list of at most {MAX_PROOF_URLS} URLs", code="INVALID_PROOF")
    if not all(is_http_url(v) for v in value):
        raise ValidationError("verification_proof must contain http(s) URLs", code="INVALID_PROOF")
    return value


def claim_profile(db: Session, employee_id: str, *, user_id: str, message: Any, verification_proof: Any = None) -> ModerationQueueItem:
    """Ask to link `user_id` to an existing profile; nothing is linked until approval."""
    if not isinstance(message, str) or len(message.strip()) < MIN_CLAIM_MESSAGE:
        raise ValidationError(
            f"Explain why this is your profile (at least {MIN_CLAIM_MESSAGE} characters)",
            code="MESSAGE_REQUIRED",
        )
    proofs = _proof_urls(verification_proof)
    _ensure_not_linked(db, user_id)
    emp = get_employee(db, employee_id)
    if emp.user_id:
        raise ConflictError("This employee profile is already linked to another account", code="EMPLOYEE_ALREADY_LINKED")
    pending = (
        db.query(ModerationQueueItem)
        .filter(
            ModerationQueueItem.item_type == CLAIM_ITEM_TYPE,
            ModerationQueueItem.item_id == emp.id,
            ModerationQueueItem.submitted_by == user_id,
            ModerationQueueItem.status == "pending",
        )
        .first()
    )
    if pending is not None:
        raise ConflictError("You already have a pending claim for this profile", code="CLAIM_PENDING")
    user = db.get(User, user_id)
    with transaction(db):
        item = ModerationQueueItem(
            item_type=CLAIM_ITEM_TYPE,
            item_id=emp.id,
            submitted_by=user_id,
            status="pending",
            request_metadata={"claim_type": CLAIM_EXISTING, "message": message.strip()},
            verification_proof=proofs or None,
        )
        db.add(item)

    notify_admins_new_employee_claim(user.pseudonym if user else "A user", emp.name, item.id, self_profile=False)
    record_audit_event("employee_claim_submitted", actor_user_id=user_id, employee_id=emp.id, claim_id=item.id)
    return item


def my_linked_profile(db: Session, user_id: str) -> dict:
    emp = linked_profile_of(db, user_id)
    if emp is None:
        raise NotFoundError("No linked employee profile found", code="NO_LINKED_PROFILE")
    history = employment_history(db, emp.id)
    comments = approved_comments(db, emp.id)
    data = serializers.employee(emp, include_private=True)
    data["current_employment"] = [serializers.employment(r) for r in history if r.is_current]
    data["employment_history"] = [serializers.employment(r) for r in history if not r.is_current]
    data["comments"] = comments
    data["comment_count"] = len(comments)
    data["average_rating"] = average_rating(db, emp.id)
    return data


def list_claims(db: Session, *, status: str | None = "pending") -> list[dict]:
    q = db.query(ModerationQueueItem).filter(ModerationQueueItem.item_type == CLAIM_ITEM_TYPE)
    if status and status != "all":
        q = q.filter(ModerationQueueItem.status == status)
    items = q.order_by(ModerationQueueItem.created_at.desc()).all()
    employees = {}
    ids = {i.item_id for i in items}
    if ids:
        employees = {e.id: e for e in db.query(Employee).filter(Employee.id.in_(ids))}
    out = []
    for item in items:
        data = serializers.queue_item(item)
        emp = employees.get(item.item_id)
        data["employee"] = serializers.employee(emp) if emp else None
        data["submitter"] = serializers.user_summary(db.get(User, item.submitted_by)) if item.submitted_by else None
        out.append(data)
    return out


def _pending_claim(db: Session, claim_id: str) -> ModerationQueueItem:
    item = db.get(ModerationQueueItem, claim_id)
    if item is None or item.item_type != CLAIM_ITEM_TYPE:
        raise NotFoundError("Claim request not found", code="CLAIM_NOT_FOUND")
    if item.status != "pending":
        raise ValidationError("Claim request has already been reviewed", code="ALREADY_REVIEWED", current_status=item.status)
    return item


def approve_claim(db: Session, claim_id: str, *, moderator_id: str, notes: Any = None) -> ModerationQueueItem:
    """Approve a claim; a self-profile becomes public, an existing profile gets linked."""
    item = _pending_claim(db, claim_id)
    emp = get_employee(db, item.item_id)
    self_profile = _claim_type(item) == SELF_PROFILE
    if not self_profile:
        if emp.user_id and emp.user_id != item.submitted_by:
            raise ConflictError("Employee already linked to another account", code="EMPLOYEE_ALREADY_LINKED")
        other = linked_profile_of(db, item.submitted_by)
        if other is not None and other.id != emp.id:
            raise ConflictError("User already has a linked employee profile", code="ALREADY_LINKED")
    notes_text = notes.strip() if isinstance(notes, str) and notes.strip() else (
        "Self-profile approved" if self_profile else "Claim approved"
    )
    user = db.get(User, item.submitted_by) if item.submitted_by else None
    now = datetime.now(UTC)
    with transaction(db):
        if self_profile:
            emp.status = "approved"
        else:
            emp.user_id = item.submitted_by
            emp.is_self_profile = True
            if user is not None:
                user.account_type = "employee"
        emp.updated_at = now
        item.status = "approved"
        item.moderator_id = moderator_id
        item.moderator_notes = notes_text
        item.reviewed_at = now

    if item.submitted_by:
        notify_employee_claim_reviewed(item.submitted_by, True, emp.name, item.id, notes_text, self_profile=self_profile)
    invalidate_employees(emp.id)
    record_audit_event("employee_claim_approved", actor_user_id=moderator_id, claim_id=item.id, employee_id=emp.id)
    log.info("Employee claim %s approved by %s", item.id, moderator_id)
    return item


def reject_claim(db: Session, claim_id: str, *, moderator_id: str, notes: Any) -> ModerationQueueItem:
    notes_text = require_text(notes, "Moderator notes", "NOTES_REQUIRED")
    if len(notes_text) < MIN_REJECTION_NOTES:
        raise ValidationError(
            f"Moderator notes must be at least {MIN_REJECTION_NOTES} characters",
            code="NOTES_REQUIRED",
        )
    item = _pending_claim(db, claim_id)
    emp = db.get(Employee, item.item_id)
    self_profile = _claim_type(item) == SELF_PROFILE
    now = datetime.now(UTC)
    with transaction(db):
        if self_profile and emp is not None:
            emp.status = "rejected"
            emp.updated_at = now
        item.status = "rejected"
        item.moderator_id = moderator_id
        item.moderator_notes = notes_text
        item.reviewed_at = now

    if item.submitted_by:
        name = emp.name if emp is not None else "the employee profile"
        notify_employee_claim_reviewed(item.submitted_by, False, name, item.id, notes_text, self_profile=self_profile)
    invalidate_employees(item.item_id)
    record_audit_event("employee_claim_rejected", actor_user_id=moderator_id, claim_id=item.id)
    return item


__all__ = [
    "create_own_profile",
    "claim_profile",
    "my_linked_profile",
    "list_claims",
    "approve_claim",
    "reject_claim",
    "linked_profile_of",
]
