"""Community validation votes and profile visibility."""
from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from sqlalchemy.orm import Session

from .audit_events import record_audit_event
from .cache import CacheKeys, cache_delete, invalidate_employees
from .db import transaction
from .employment_service import current_establishment_ids, get_employee
from .errors import ConflictError, DomainError, ValidationError
from .gamification_service import XP_VALIDATION_VOTE, award_xp_safely
from .models import VOTE_TYPES, ExistenceVote
from .ownership_service import find_link
from .roles import is_admin

MIN_VOTES_FOR_BADGE = 20


def cast_vote(db: Session, employee_id: str, *, user_id: str, vote_type: Any) -> ExistenceVote:
    if vote_type not in VOTE_TYPES:
        raise ValidationError("vote_type must be exists or not_exists", code="INVALID_VOTE_TYPE")
    emp = get_employee(db, employee_id)
    existing = (
        db.query(ExistenceVote)
        .filter(ExistenceVote.employee_id == emp.id, ExistenceVote.user_id == user_id)
        .first()
    )
    if existing:
        raise ConflictError("You have already voted for this profile", code="ALREADY_VOTED")
    with transaction(db):
        vote = ExistenceVote(employee_id=emp.id, user_id=user_id, vote_type=vote_type)
        db.add(vote)
    cache_delete(CacheKeys.employee(emp.id))
    award_xp_safely(
        user_id,
        XP_VALIDATION_VOTE,
        "validation_vote",
        entity_type="employee",
        entity_id=emp.id,
        description="Community validation vote",
    )
    return vote


def vote_stats(db: Session, employee_id: str, *, user_id: str | None = None) -> dict:
    emp = get_employee(db, employee_id)
    votes = db.query(ExistenceVote).filter(ExistenceVote.employee_id == emp.id).all()
    total = len(votes)
    exists = sum(1 for v in votes if v.vote_type == "exists")
    percentage = round(exists / total * 100, 2) if total else 0.0
    if total < MIN_VOTES_FOR_BADGE:
        badge = "?"
    elif percentage > 50:
        badge = "neutral"
    else:
        badge = "warning"
    user_vote = None
    if user_id:
        user_vote = next((v.vote_type for v in votes if v.user_id == user_id), None)
    return {
        "totalVotes": total,
        "existsVotes": exists,
        "notExistsVotes": total - exists,
        "validationPercentage": percentage,
        "badgeType": badge,
        "userVote": user_vote,
    }


def set_visibility(db: Session, employee_id: str, *, user_id: str, role: str, is_hidden: Any, reason: Any = None):
    if not isinstance(is_hidden, bool):
        raise ValidationError("isHidden must be a boolean")
    if reason is not None and not isinstance(reason, str):
        raise ValidationError("reason must be a string")
    emp = get_employee(db, employee_id)
    if not is_admin(role):
        est_ids = current_establishment_ids(db, emp.id) or [e for e in (emp.current_establishment_id,) if e]
        if not any(find_link(db, user_id, est_id) for est_id in est_ids):
            raise DomainError(403, "FORBIDDEN", "Only admins or owners of the employee's establishment can change visibility")
    with transaction(db):
        emp.is_hidden = is_hidden
        if is_hidden:
            emp.hidden_by = user_id
            emp.hidden_at = datetime.now(UTC)
            emp.hide_reason = reason.strip() if reason else None
        else:
            emp.hidden_by = None
            emp.hidden_at = None
            emp.hide_reason = None
    invalidate_employees(emp.id)
    record_audit_event("employee_visibility_changed", actor_user_id=user_id, employee_id=emp.id, is_hidden=is_hidden)
    return emp
