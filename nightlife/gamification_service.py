"""XP awards and levels.

Callers treat award_xp as a side effect: wrap it with award_xp_safely (or
catch and log themselves) so a gamification failure never fails the primary
action.
"""
from __future__ import annotations

import logging
from datetime import UTC, datetime

from .db import get_new_session
from .models import UserPoints, XPTransaction
from .notification_service import create_notification

log = logging.getLogger(__name__)

XP_PER_LEVEL = 100

XP_EMPLOYEE_CREATED = 20
XP_EMPLOYEE_APPROVED = 10
XP_QUEUE_ITEM_APPROVED = 25
XP_VALIDATION_VOTE = 2

XP_REASONS = (
    "profile_updated",
    "admin_manual",
    "content_approved",
    "validation_vote",
    "comment_posted",
)


def calculate_level(total_xp: int) -> int:
    return total_xp // XP_PER_LEVEL + 1


def award_xp(
    user_id: str,
    amount: int,
    reason: str,
    entity_type: str | None = None,
    entity_id: str | None = None,
    description: str | None = None,
) -> UserPoints:
    """Record an XP transaction and update the user's aggregate points.

    Raises ValueError for a non-positive or non-integer amount or an unknown reason.
    """
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise ValueError("XP amount must be a positive integer")
    if reason not in XP_REASONS:
        raise ValueError(f"unknown XP reason {reason!r}")
    db = get_new_session()
    try:
        db.add(
            XPTransaction(
                user_id=user_id,
                xp_amount=amount,
                reason=reason,
                entity_type=entity_type,
                entity_id=entity_id,
                description=description,
            )
        )
        points = db.get(UserPoints, user_id)
        if points is None:
            points = UserPoints(user_id=user_id, total_xp=0, monthly_xp=0, current_level=1)
            db.add(points)
        old_level = points.current_level or 1
        points.total_xp = (points.total_xp or 0) + amount
        points.monthly_xp = (points.monthly_xp or 0) + amount
        points.current_level = calculate_level(points.total_xp)
        points.updated_at = datetime.now(UTC)
        db.commit()
        db.refresh(points)
        db.expunge(points)
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
    if points.current_level > old_level:
        try:
            create_notification(
                user_id,
                "level_up",
                f"Level {points.current_level} reached",
                f"You reached level {points.current_level} with {points.total_xp} XP.",
                link="/profile",
            )
        except Exception:
            log.warning("Level-up notification failed for user %s", user_id, exc_info=True)
    return points


def award_xp_safely(user_id: str | None, amount: int, reason: str, **kwargs) -> bool:
    """Best-effort wrapper; returns False (and logs) instead of raising."""
    if not user_id:
        return False
    try:
        award_xp(user_id, amount, reason, **kwargs)
        return True
    except Exception:
        log.warning("XP award failed user=%s amount=%s reason=%s", user_id, amount, reason, exc_info=True)
        return False


def get_points(user_id: str) -> dict:
    db = get_new_session()
    try:
        points = db.get(UserPoints, user_id)
        if points is None:
            return {"user_id": user_id, "total_xp": 0, "monthly_xp": 0, "current_level": 1}
        return {
            "user_id": user_id,
            "total_xp": points.total_xp,
            "monthly_xp": points.monthly_xp,
            "current_level": points.current_level,
            "next_level_xp": points.current_level * XP_PER_LEVEL,
        }
    finally:
        db.close()
