"""Employee profiles and their employment history.

EmploymentHistory rows with is_current=True describe where an employee works
now; Employee.current_establishment_id mirrors the first of them. Both are
always written in one transaction.
"""
from __future__ import annotations

import hashlib
import json
import logging
from datetime import UTC, date, datetime
from typing import Any

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from . import serializers
from .audit_events import record_audit_event
from .cache import CacheKeys, CacheTTL, cache_get, cache_set, invalidate_employees
from .db import transaction
from .errors import DomainError, NotFoundError, ValidationError
from .gamification_service import XP_EMPLOYEE_CREATED, award_xp_safely
from .models import (
    MODERATION_STATUSES,
    Comment,
    Employee,
    EmploymentHistory,
    Establishment,
    ExistenceVote,
    ModerationQueueItem,
    Report,
    User,
)
from .moderation_service import enqueue
from .notification_service import (
    notify_admins_pending_content,
    notify_admins_self_removal,
    notify_content_pending_review,
)
from .ownership_service import is_http_url
from .pagination import PageRequest, page_offset
from .roles import is_staff

log = logging.getLogger(__name__)

SEX_VALUES = ("male", "female", "ladyboy")
MAX_PHOTOS = 5
MAX_REMOVAL_INFO = 1000


def get_employee(db: Session, employee_id: str) -> Employee:
    emp = db.get(Employee, employee_id)
    if emp is None:
        raise NotFoundError("Employee not found", code="EMPLOYEE_NOT_FOUND")
    return emp


def validate_profile(data: dict, *, partial: bool) -> dict:
    out: dict[str, Any] = {}
    if "name" in data or not partial:
        name = data.get("name")
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("name is required")
        out["name"] = name.strip()
    if "sex" in data or not partial:
        sex = data.get("sex")
        if sex not in SEX_VALUES:
            raise ValidationError("sex must be one of male, female, ladyboy", code="INVALID_SEX")
        out["sex"] = sex
    if "nationality" in data:
        nat = data.get("nationality")
        if nat is not None:
            if isinstance(nat, str):
                nat = [nat]
            if (
                not isinstance(nat, list)
                or not 1 <= len(nat) <= 2
                or not all(isinstance(n, str) and n.strip() for n in nat)
            ):
                raise ValidationError("nationality must be a list of 1 or 2 names", code="INVALID_NATIONALITY")
            nat = [n.strip() for n in nat]
        out["nationality"] = nat
    if "photos" in data:
        photos = data.get("photos") or []
        if not isinstance(photos, list) or len(photos) > MAX_PHOTOS:
            raise ValidationError(f"photos must be a list of at most {MAX_PHOTOS} URLs", code="INVALID_PHOTOS")
        if not all(is_http_url(p) for p in photos):
            raise ValidationError("photos must be http(s) URLs", code="INVALID_PHOTOS")
        out["photos"] = photos
    if "age" in data:
        age = data.get("age")
        if age is not None and (isinstance(age, bool) or not isinstance(age, int) or not 18 <= age <= 80):
            raise ValidationError("age must be an integer between 18 and 80", code="INVALID_AGE")
        out["age"] = age
    for key in ("nickname", "description"):
        if key in data:
            out[key] = data.get(key)
    if "social_media" in data:
        social = data.get("social_media")
        if social is not None and not isinstance(social, dict):
            raise ValidationError("social_media must be an object")
        out["social_media"] = social
    if "is_freelance" in data:
        out["is_freelance"] = bool(data.get("is_freelance"))
    return out


def target_establishments(db: Session, data: dict, is_freelance: bool) -> list[str] | None:
    """Establishment ids requested by the payload, or None when it does not touch employment."""
    if "current_establishment_ids" in data:
        raw = data.get("current_establishment_ids")
        if raw is None:
            ids: list[str] = []
        elif isinstance(raw, list) and all(isinstance(i, str) and i for i in raw):
            ids = list(dict.fromkeys(raw))
        else:
            raise ValidationError("current_establishment_ids must be a list of ids")
    elif "current_establishment_id" in data:
        raw = data.get("current_establishment_id")
        if raw is not None and not isinstance(raw, str):
            raise ValidationError("current_establishment_id must be a string")
        ids = [raw] if raw else []
    else:
        return None
    if len(ids) > 1 and not is_freelance:
        raise ValidationError(
            "Only freelance employees can work at several establishments",
            code="FREELANCE_REQUIRED",
        )
    for est_id in ids:
        if db.get(Establishment, est_id) is None:
            raise NotFoundError(f"Establishment {est_id} not found", code="ESTABLISHMENT_NOT_FOUND")
    return ids


def end_current_employment(db: Session, employee_id: str, today: date | None = None) -> int:
    """Close every current row; the caller's transaction commits."""
    today = today or date.today()
    rows = (
        db.query(EmploymentHistory)
        .filter(EmploymentHistory.employee_id == employee_id, EmploymentHistory.is_current.is_(True))
        .all()
    )
    for row in rows:
        row.is_current = False
        row.end_date = today
    return len(rows)


def current_establishment_ids(db: Session, employee_id: str) -> list[str]:
    rows = (
        db.query(EmploymentHistory.establishment_id)
        .filter(EmploymentHistory.employee_id == employee_id, EmploymentHistory.is_current.is_(True))
        .order_by(EmploymentHistory.start_date.asc(), EmploymentHistory.created_at.asc())
        .all()
    )
    return list(dict.fromkeys(est_id for (est_id,) in rows))


def working_at(establishment_id: str):
    """Filter clause: employees with a current row at `establishment_id` (freelancers included)."""
    current = select(EmploymentHistory.employee_id).where(
        EmploymentHistory.establishment_id == establishment_id,
        EmploymentHistory.is_current.is_(True),
    )
    return or_(Employee.current_establishment_id == establishment_id, Employee.id.in_(current))


def _check_freelance_change(db: Session, employee: Employee, freelance: bool, establishment_ids: list[str] | None) -> None:
    """Dropping freelance status needs a single current establishment afterwards."""
    if freelance or establishment_ids is not None:
        return
    if len(current_establishment_ids(db, employee.id)) > 1:
        raise ValidationError(
            "Pick one current_establishment_id before ending freelance status",
            code="FREELANCE_REQUIRED",
        )


def reassign(db: Session, employee: Employee, establishment_ids: list[str], *, user_id: str | None) -> list[EmploymentHistory]:
    """End current employment, open rows for `establishment_ids` and sync the denormalized field.

    Must run inside a transaction; nothing is committed here.
    """
    if len(establishment_ids) > 1 and not employee.is_freelance:
        raise ValidationError(
            "Only freelance employees can work at several establishments",
            code="FREELANCE_REQUIRED",
        )
    today = date.today()
    end_current_employment(db, employee.id, today)
    db.flush()
    created = []
    for est_id in establishment_ids:
        row = EmploymentHistory(
            employee_id=employee.id,
            establishment_id=est_id,
            start_date=today,
            is_current=True,
            created_by=user_id,
        )
        db.add(row)
        created.append(row)
    employee.current_establishment_id = establishment_ids[0] if establishment_ids else None
    return created


def can_edit(employee: Employee, user_id: str, role: str) -> bool:
    return is_staff(role) or employee.created_by == user_id or (employee.user_id is not None and employee.user_id == user_id)


def create_employee(db: Session, *, user_id: str, data: dict) -> Employee:
    fields = validate_profile(data, partial=False)
    est_ids = target_establishments(db, data, fields.get("is_freelance", False)) or []
    submitter = db.get(User, user_id)
    with transaction(db):
        emp = Employee(status="pending", created_by=user_id, **fields)
        db.add(emp)
        db.flush()
        reassign(db, emp, est_ids, user_id=user_id)
        enqueue(db, "employee", emp.id, user_id)

    pseudonym = submitter.pseudonym if submitter else "A user"
    notify_admins_pending_content("employee", emp.name, pseudonym, emp.id)
    notify_content_pending_review(user_id, "employee", emp.name, emp.id)
    award_xp_safely(
        user_id,
        XP_EMPLOYEE_CREATED,
        "profile_updated",
        entity_type="employee",
        entity_id=emp.id,
        description="Employee profile submitted",
    )
    invalidate_employees()
    record_audit_event("employee_created", actor_user_id=user_id, employee_id=emp.id)
    return emp


def update_employee(db: Session, employee_id: str, *, user_id: str, role: str, data: dict) -> Employee:
    emp = get_employee(db, employee_id)
    if not can_edit(emp, user_id, role):
        raise DomainError(403, "FORBIDDEN", "You cannot edit this employee")
    fields = validate_profile(data, partial=True)
    freelance = fields.get("is_freelance", emp.is_freelance)
    est_ids = target_establishments(db, data, freelance)
    _check_freelance_change(db, emp, freelance, est_ids)
    with transaction(db):
        for key, value in fields.items():
            setattr(emp, key, value)
        if est_ids is not None:
            reassign(db, emp, est_ids, user_id=user_id)
        if not is_staff(role):
            emp.status = "pending"
        emp.updated_at = datetime.now(UTC)
    invalidate_employees(emp.id)
    record_audit_event("employee_updated", actor_user_id=user_id, employee_id=emp.id, reassigned=est_ids is not None)
    return emp


def admin_update_employee(db: Session, employee_id: str, *, admin_id: str, data: dict) -> Employee:
    fields = validate_profile(data, partial=True)
    emp = get_employee(db, employee_id)
    if "status" in data:
        if data["status"] not in MODERATION_STATUSES:
            raise ValidationError("Invalid status", code="INVALID_STATUS", allowedStatuses=list(MODERATION_STATUSES))
        fields["status"] = data["status"]
    if "is_verified" in data:
        fields["is_verified"] = bool(data["is_verified"])
    freelance = fields.get("is_freelance", emp.is_freelance)
    est_ids = target_establishments(db, data, freelance)
    _check_freelance_change(db, emp, freelance, est_ids)
    with transaction(db):
        for key, value in fields.items():
            setattr(emp, key, value)
        if est_ids is not None:
            reassign(db, emp, est_ids, user_id=admin_id)
        emp.updated_at = datetime.now(UTC)
    invalidate_employees(emp.id)
    return emp


def delete_employee(db: Session, employee_id: str, *, user_id: str, role: str) -> None:
    emp = get_employee(db, employee_id)
    if not (is_staff(role) or emp.created_by == user_id):
        raise DomainError(403, "FORBIDDEN", "You cannot delete this employee")
    with transaction(db):
        db.query(EmploymentHistory).filter(EmploymentHistory.employee_id == emp.id).delete()
        db.query(ExistenceVote).filter(ExistenceVote.employee_id == emp.id).delete()
        comment_ids = [cid for (cid,) in db.query(Comment.id).filter(Comment.employee_id == emp.id)]
        if comment_ids:
            db.query(Report).filter(Report.comment_id.in_(comment_ids)).delete(synchronize_session=False)
            db.query(Comment).filter(Comment.id.in_(comment_ids)).delete(synchronize_session=False)
        db.query(ModerationQueueItem).filter(
            ModerationQueueItem.item_type.in_(("employee", "employee_claim")), ModerationQueueItem.item_id == emp.id
        ).delete(synchronize_session=False)
        db.delete(emp)
    invalidate_employees(employee_id)
    record_audit_event("employee_deleted", actor_user_id=user_id, employee_id=employee_id)


def _parse_date(value: Any, field: str) -> date | None:
    if value in (None, ""):
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be an ISO date")
    try:
        return date.fromisoformat(value[:10])
    except ValueError as e:
        raise ValidationError(f"{field} must be an ISO date") from e


def add_employment(db: Session, employee_id: str, *, user_id: str, role: str, data: dict) -> EmploymentHistory:
    emp = get_employee(db, employee_id)
    if not can_edit(emp, user_id, role):
        raise DomainError(403, "FORBIDDEN", "You cannot edit this employee")
    est_id = data.get("establishment_id")
    start = _parse_date(data.get("start_date"), "start_date")
    if not est_id or start is None:
        raise ValidationError("establishment_id and start_date are required")
    if db.get(Establishment, est_id) is None:
        raise NotFoundError("Establishment not found", code="ESTABLISHMENT_NOT_FOUND")
    end = _parse_date(data.get("end_date"), "end_date")
    if end is not None and end < start:
        raise ValidationError("end_date must not be before start_date")
    is_current = end is None
    with transaction(db):
        if is_current:
            end_current_employment(db, emp.id)
            db.flush()
        row = EmploymentHistory(
            employee_id=emp.id,
            establishment_id=est_id,
            position=data.get("position"),
            start_date=start,
            end_date=end,
            is_current=is_current,
            notes=data.get("notes"),
            created_by=user_id,
        )
        db.add(row)
        if is_current:
            emp.current_establishment_id = est_id
    invalidate_employees(emp.id)
    return row


def employment_history(db: Session, employee_id: str) -> list[EmploymentHistory]:
    return (
        db.query(EmploymentHistory)
        .filter(EmploymentHistory.employee_id == employee_id)
        .order_by(EmploymentHistory.is_current.desc(), EmploymentHistory.start_date.desc())
        .all()
    )


def request_self_removal(db: Session, employee_id: str, *, user_id: str, verification_info: Any) -> Employee:
    emp = get_employee(db, employee_id)
    if emp.user_id != user_id:
        raise DomainError(403, "FORBIDDEN", "Only the linked account can request removal of this profile")
    if verification_info is not None and (not isinstance(verification_info, str) or len(verification_info) > MAX_REMOVAL_INFO):
        raise ValidationError(f"verification_info must be a string of at most {MAX_REMOVAL_INFO} characters")
    with transaction(db):
        emp.self_removal_requested = True
        emp.self_removal_info = verification_info
        emp.self_removal_requested_at = datetime.now(UTC)
    notify_admins_self_removal(emp.name, emp.id)
    record_audit_event("employee_self_removal_requested", actor_user_id=user_id, employee_id=emp.id)
    return emp


def visible_to(emp: Employee, role: str | None) -> bool:
    """Public callers only see approved, non-hidden profiles."""
    if is_staff(role):
        return True
    return emp.status == "approved" and not emp.is_hidden


def list_public(db: Session, *, page_req: PageRequest, establishment_id: str | None = None, q: str | None = None) -> dict:
    """Approved, non-hidden profiles; cached per query fingerprint."""
    params = {"page": page_req["page"], "size": page_req["size"], "establishment_id": establishment_id, "q": q}
    fingerprint = hashlib.sha1(json.dumps(params, sort_keys=True).encode("utf-8")).hexdigest()[:16]
    key = CacheKeys.employees_list(fingerprint)
    cached = cache_get(key)
    if cached is not None:
        return cached
    query = db.query(Employee).filter(Employee.status == "approved", Employee.is_hidden.is_(False))
    if establishment_id:
        query = query.filter(working_at(establishment_id))
    if q:
        like = f"%{q}%"
        query = query.filter(Employee.name.ilike(like) | Employee.nickname.ilike(like))
    total = query.count()
    rows = query.order_by(Employee.created_at.desc()).offset(page_offset(page_req)).limit(page_req["size"]).all()
    result = {"items": [serializers.employee(e) for e in rows], "total": total}
    cache_set(key, result, CacheTTL.LISTINGS)
    return result


__all__ = [
    "list_public",
    "SEX_VALUES",
    "get_employee",
    "reassign",
    "end_current_employment",
    "create_employee",
    "update_employee",
    "admin_update_employee",
    "delete_employee",
    "add_employment",
    "employment_history",
    "request_self_removal",
    "visible_to",
    "can_edit",
    "current_establishment_ids",
    "working_at",
]
