"""Moderation state machine for establishments, employees and comments.

Content starts `pending` and a moderator moves it to `approved` or `rejected`.
The status write commits first; notifications, XP and cache invalidation run
afterwards and are best-effort.
"""
from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import func
from sqlalchemy.orm import Session

from . import serializers
from .audit_events import record_audit_event
from .cache import CacheKeys, CacheTTL, cache_delete, cache_get, cache_set, invalidate_employees, invalidate_establishments
from .db import transaction
from .errors import ConflictError, NotFoundError, ValidationError
from .gamification_service import XP_EMPLOYEE_APPROVED, XP_QUEUE_ITEM_APPROVED, award_xp_safely
from .legacy_ids import find_uuid_by_number
from .models import Comment, Employee, Establishment, ModerationQueueItem, Report, User
from .notification_service import notify_content_approved, notify_content_rejected

log = logging.getLogger(__name__)

ENTITY_MODELS: dict[str, Any] = {
    "establishment": Establishment,
    "employee": Employee,
    "comment": Comment,
}

REPORT_ACTIONS = ("dismiss", "remove_comment")

LEGACY_ID_SUGGESTIONS = [
    "The establishment might have been deleted",
    "This could be a legacy ID from an old database structure",
    "Try refreshing the admin panel to get current establishment IDs",
]


def require_text(value: Any, field: str, code: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} is required", code=code)
    return value.strip()


def resolve_establishment(db: Session, identifier: str) -> Establishment:
    """Find an establishment by UUID or by its legacy numeric id."""
    real_id = find_uuid_by_number(db, Establishment, identifier)
    est = db.get(Establishment, real_id) if real_id else None
    if est is None:
        raise NotFoundError(
            f"No establishment found with ID: {identifier}.",
            code="ESTABLISHMENT_NOT_FOUND",
            suggestions=LEGACY_ID_SUGGESTIONS,
        )
    return est


def get_entity(db: Session, entity_type: str, identifier: str):
    if entity_type == "establishment":
        return resolve_establishment(db, identifier)
    model = ENTITY_MODELS.get(entity_type)
    if model is None:
        raise ValidationError(f"unknown entity type {entity_type!r}", code="INVALID_ENTITY_TYPE")
    obj = db.get(model, identifier)
    if obj is None:
        raise NotFoundError(f"{entity_type.capitalize()} not found", code=f"{entity_type.upper()}_NOT_FOUND")
    return obj


def _creator_of(entity_type: str, obj) -> str | None:
    if entity_type == "comment":
        return obj.user_id
    return obj.created_by


def _display_name(entity_type: str, obj) -> str:
    if entity_type == "comment":
        return "Your comment"
    return obj.name


def _check_transition(obj, strict: bool) -> None:
    if strict and obj.status != "pending":
        raise ConflictError(
            f"Cannot moderate an item that is already {obj.status}",
            code="INVALID_TRANSITION",
            current_status=obj.status,
        )


def _close_queue_items(db: Session, entity_type: str, entity_id: str, status: str, moderator_id: str | None, notes: str | None) -> None:
    now = datetime.now(UTC)
    items = (
        db.query(ModerationQueueItem)
        .filter(
            ModerationQueueItem.item_type == entity_type,
            ModerationQueueItem.item_id == entity_id,
            ModerationQueueItem.status == "pending",
        )
        .all()
    )
    for item in items:
        item.status = status
        item.moderator_id = moderator_id
        item.moderator_notes = notes
        item.reviewed_at = now


def invalidate_for(entity_type: str, obj) -> None:
    """Drop cached reads of `obj`; comments live on their employee's detail."""
    if entity_type == "establishment":
        invalidate_establishments(obj.id if obj is not None else None)
    elif entity_type == "employee":
        invalidate_employees(obj.id if obj is not None else None)
    else:
        invalidate_employees(obj.employee_id if obj is not None else None)


def approve_entity(db: Session, entity_type: str, identifier: str, *, moderator_id: str | None, strict: bool = False):
    obj = get_entity(db, entity_type, identifier)
    _check_transition(obj, strict)
    with transaction(db):
        obj.status = "approved"
        obj.updated_at = datetime.now(UTC)
        _close_queue_items(db, entity_type, obj.id, "approved", moderator_id, None)

    creator = _creator_of(entity_type, obj)
    if creator:
        notify_content_approved(creator, entity_type, _display_name(entity_type, obj), obj.id)
        if entity_type == "employee":
            award_xp_safely(
                creator,
                XP_EMPLOYEE_APPROVED,
                "content_approved",
                entity_type="employee",
                entity_id=obj.id,
                description="Employee profile approved",
            )
    invalidate_for(entity_type, obj)
    record_audit_event(f"{entity_type}_approved", actor_user_id=moderator_id, entity_id=obj.id)
    log.info("%s %s approved by %s", entity_type, obj.id, moderator_id)
    return obj


def reject_entity(db: Session, entity_type: str, identifier: str, reason: Any, *, moderator_id: str | None, strict: bool = False):
    reason_text = require_text(reason, "Rejection reason", "REASON_REQUIRED")
    obj = get_entity(db, entity_type, identifier)
    _check_transition(obj, strict)
    with transaction(db):
        obj.status = "rejected"
        obj.updated_at = datetime.now(UTC)
        _close_queue_items(db, entity_type, obj.id, "rejected", moderator_id, reason_text)

    creator = _creator_of(entity_type, obj)
    if creator:
        notify_content_rejected(creator, entity_type, reason_text, obj.id)
    invalidate_for(entity_type, obj)
    record_audit_event(f"{entity_type}_rejected", actor_user_id=moderator_id, entity_id=obj.id, reason=reason_text)
    log.info("%s %s rejected by %s", entity_type, obj.id, moderator_id)
    return obj


# --- Moderation queue ---
def enqueue(db: Session, item_type: str, item_id: str, submitted_by: str | None) -> ModerationQueueItem:
    """Add a pending queue item; the caller's transaction commits it."""
    item = ModerationQueueItem(item_type=item_type, item_id=item_id, submitted_by=submitted_by, status="pending")
    db.add(item)
    return item


def _item_data(db: Session, item: ModerationQueueItem) -> dict | None:
    if item.item_type == "employee_claim":
        emp = db.get(Employee, item.item_id)
        return serializers.employee(emp) if emp else None
    model = ENTITY_MODELS.get(item.item_type)
    obj = db.get(model, item.item_id) if model else None
    if obj is None:
        return None
    if item.item_type == "establishment":
        return serializers.establishment(obj)
    if item.item_type == "employee":
        return serializers.employee(obj)
    return serializers.comment(obj)


def list_queue(db: Session, *, status: str | None = "pending", item_type: str | None = None, limit: int = 50) -> list[dict]:
    q = db.query(ModerationQueueItem)
    if status and status != "all":
        q = q.filter(ModerationQueueItem.status == status)
    if item_type:
        q = q.filter(ModerationQueueItem.item_type == item_type)
    items = q.order_by(ModerationQueueItem.created_at.asc()).limit(limit).all()
    out = []
    for item in items:
        data = serializers.queue_item(item)
        data["item_data"] = _item_data(db, item)
        submitter = db.get(User, item.submitted_by) if item.submitted_by else None
        data["submitter"] = serializers.user_summary(submitter)
        out.append(data)
    return out


def review_queue_item(db: Session, queue_id: str, *, approve: bool, moderator_id: str, notes: Any = None) -> ModerationQueueItem:
    if approve:
        notes_text = notes.strip() if isinstance(notes, str) and notes.strip() else None
    else:
        notes_text = require_text(notes, "Moderator notes", "NOTES_REQUIRED")
    item = db.get(ModerationQueueItem, queue_id)
    if item is None:
        raise NotFoundError("Moderation item not found", code="QUEUE_ITEM_NOT_FOUND")
    if item.status != "pending":
        raise ValidationError("Item has already been reviewed", code="ALREADY_REVIEWED", current_status=item.status)
    if item.item_type == "employee_claim":
        raise ValidationError(
            "Employee claims are reviewed through /api/admin/employee-claims",
            code="CLAIM_REVIEW_REQUIRED",
        )
    new_status = "approved" if approve else "rejected"
    model = ENTITY_MODELS.get(item.item_type)
    target = db.get(model, item.item_id) if model else None
    with transaction(db):
        if target is not None:
            target.status = new_status
            target.updated_at = datetime.now(UTC)
        item.status = new_status
        item.moderator_id = moderator_id
        item.moderator_notes = notes_text
        item.reviewed_at = datetime.now(UTC)

    if item.submitted_by:
        name = _display_name(item.item_type, target) if target is not None else item.item_type
        if approve:
            notify_content_approved(item.submitted_by, item.item_type, name, item.item_id)
            award_xp_safely(
                item.submitted_by,
                XP_QUEUE_ITEM_APPROVED,
                "content_approved",
                entity_type=item.item_type,
                entity_id=item.item_id,
                description=f"{item.item_type} approved by moderator",
            )
        else:
            notify_content_rejected(item.submitted_by, item.item_type, notes_text or "", item.item_id)
    invalidate_for(item.item_type, target)
    record_audit_event(f"queue_{new_status}", actor_user_id=moderator_id, queue_id=item.id, item_type=item.item_type)
    return item


def queue_stats(db: Session) -> dict:
    def _count(status: str) -> int:
        return db.query(ModerationQueueItem).filter(ModerationQueueItem.status == status).count()

    rows = (
        db.query(ModerationQueueItem.item_type, func.count(ModerationQueueItem.id))
        .filter(ModerationQueueItem.status == "pending")
        .group_by(ModerationQueueItem.item_type)
        .all()
    )
    by_type = {"employee": 0, "establishment": 0, "comment": 0}
    for item_type, n in rows:
        by_type[item_type] = n
    return {
        "total_pending": _count("pending"),
        "total_approved": _count("approved"),
        "total_rejected": _count("rejected"),
        "pending_by_type": by_type,
    }


# --- Reports ---
def create_report(db: Session, comment_id: str, *, user_id: str, reason: Any) -> Report:
    reason_text = require_text(reason, "Report reason", "REASON_REQUIRED")
    if db.get(Comment, comment_id) is None:
        raise NotFoundError("Comment not found", code="COMMENT_NOT_FOUND")
    existing = (
        db.query(Report)
        .filter(Report.comment_id == comment_id, Report.reported_by == user_id, Report.status == "pending")
        .first()
    )
    if existing:
        raise ConflictError("You already reported this comment", code="ALREADY_REPORTED")
    with transaction(db):
        report = Report(comment_id=comment_id, reported_by=user_id, reason=reason_text, status="pending")
        db.add(report)
    cache_delete(CacheKeys.DASHBOARD_STATS)
    return report


def list_reports(db: Session, *, status: str | None = "pending") -> list[dict]:
    q = db.query(Report)
    if status and status != "all":
        q = q.filter(Report.status == status)
    out = []
    for r in q.order_by(Report.created_at.desc()).all():
        data = serializers.report(r)
        c = db.get(Comment, r.comment_id)
        data["comment"] = serializers.comment(c) if c else None
        data["reporter"] = serializers.user_summary(db.get(User, r.reported_by))
        out.append(data)
    return out


def resolve_report(db: Session, report_id: str, *, action: Any, moderator_id: str) -> Report:
    if action not in REPORT_ACTIONS:
        raise ValidationError("action must be one of dismiss, remove_comment", code="INVALID_ACTION")
    report = db.get(Report, report_id)
    if report is None:
        raise NotFoundError("Report not found", code="REPORT_NOT_FOUND")
    if report.status != "pending":
        raise ValidationError("Report has already been reviewed", code="ALREADY_REVIEWED", current_status=report.status)
    comment = db.get(Comment, report.comment_id)
    now = datetime.now(UTC)
    with transaction(db):
        if action == "remove_comment":
            if comment is not None:
                comment.status = "rejected"
                comment.updated_at = now
            report.status = "resolved"
        else:
            report.status = "dismissed"
        report.reviewed_by = moderator_id
        report.reviewed_at = now

    if action == "remove_comment" and comment is not None:
        notify_content_rejected(comment.user_id, "comment", f"Removed after a report: {report.reason}", comment.id)
    invalidate_for("comment", comment)
    record_audit_event("report_resolved", actor_user_id=moderator_id, report_id=report.id, resolution=action)
    return report


# --- Dashboard ---
def dashboard_stats(db: Session) -> dict:
    cached = cache_get(CacheKeys.DASHBOARD_STATS)
    if cached is not None:
        return cached

    def _count(model, *criteria) -> int:
        return db.query(model).filter(*criteria).count()

    stats = {
        "totalEstablishments": _count(Establishment),
        "pendingEstablishments": _count(Establishment, Establishment.status == "pending"),
        "totalEmployees": _count(Employee),
        "pendingEmployees": _count(Employee, Employee.status == "pending"),
        "totalUsers": _count(User),
        "totalComments": _count(Comment),
        "pendingComments": _count(Comment, Comment.status == "pending"),
        "reportedComments": _count(Report, Report.status == "pending"),
    }
    cache_set(CacheKeys.DASHBOARD_STATS, stats, CacheTTL.DASHBOARD_STATS)
    return stats
