"""Comments and ratings on employee profiles."""
from __future__ import annotations

from typing import Any

from sqlalchemy.orm import Session

from .audit_events import record_audit_event
from .db import transaction
from .employment_service import get_employee, visible_to
from .errors import NotFoundError, ValidationError
from .models import Comment, User
from .moderation_service import enqueue

MAX_COMMENT_LENGTH = 2000


def create_comment(db: Session, employee_id: str, *, user_id: str, role: str, data: dict) -> Comment:
    content = data.get("content")
    if not isinstance(content, str) or not content.strip():
        raise ValidationError("content is required")
    if len(content) > MAX_COMMENT_LENGTH:
        raise ValidationError(f"content must be at most {MAX_COMMENT_LENGTH} characters")
    rating: Any = data.get("rating")
    if rating is not None and (isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5):
        raise ValidationError("rating must be an integer between 1 and 5", code="INVALID_RATING")
    emp = get_employee(db, employee_id)
    if not visible_to(emp, role):
        raise NotFoundError("Employee not found", code="EMPLOYEE_NOT_FOUND")
    with transaction(db):
        c = Comment(employee_id=emp.id, user_id=user_id, content=content.strip(), rating=rating, status="pending")
        db.add(c)
        db.flush()
        enqueue(db, "comment", c.id, user_id)
    record_audit_event("comment_created", actor_user_id=user_id, comment_id=c.id)
    return c


def approved_comments(db: Session, employee_id: str) -> list[dict]:
    rows = (
        db.query(Comment, User.pseudonym)
        .join(User, User.id == Comment.user_id)
        .filter(Comment.employee_id == employee_id, Comment.status == "approved")
        .order_by(Comment.created_at.desc())
        .all()
    )
    out = []
    for c, pseudonym in rows:
        out.append(
            {
                "id": c.id,
                "content": c.content,
                "rating": c.rating,
                "user": {"id": c.user_id, "pseudonym": pseudonym},
                "created_at": c.created_at.isoformat() if c.created_at else None,
            }
        )
    return out


def average_rating(db: Session, employee_id: str) -> float | None:
    ratings = [
        r
        for (r,) in db.query(Comment.rating).filter(
            Comment.employee_id == employee_id,
            Comment.status == "approved",
            Comment.rating.isnot(None),
        )
    ]
    if not ratings:
        return None
    return round(sum(ratings) / len(ratings), 2)
