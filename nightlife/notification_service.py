"""In-app notifications.

Every notify_* helper is best-effort: it writes through its own short-lived
session so a failed notification can never roll back (or be rolled back by)
the primary mutation that triggered it. Failures are logged and swallowed.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable

from sqlalchemy import select

from .db import get_new_session
from .models import Notification, User

log = logging.getLogger(__name__)

NOTIFICATION_TYPES = (
    "employee_approved",
    "employee_rejected",
    "establishment_approved",
    "establishment_rejected",
    "comment_approved",
    "comment_rejected",
    "content_pending_review",
    "new_content_pending",
    "ownership_request_submitted",
    "ownership_request_approved",
    "ownership_request_rejected",
    "new_ownership_request",
    "ownership_assigned",
    "self_removal_request",
    "new_employee_claim",
    "employee_claim_approved",
    "employee_claim_rejected",
    "level_up",
)

_ENTITY_PATHS = {
    "establishment": "/bar/{id}",
    "employee": "/profile/{id}",
    "comment": "/profile/{id}",
}


def sanitize_link(link: str | None) -> str | None:
    """Only same-site relative paths survive; anything else is dropped."""
    if not link or not isinstance(link, str):
        return None
    link = link.strip()
    if not link.startswith("/") or link.startswith("//") or "\\" in link:
        return None
    return link


def push_hook(notification: Notification) -> None:
    """Outbound push delivery point; the transport is not part of this service."""
    log.debug("push skipped for notification %s (no transport configured)", notification.id)


def create_notification(
    user_id: str,
    type_: str,
    title: str,
    message: str,
    link: str | None = None,
    related_entity_type: str | None = None,
    related_entity_id: str | None = None,
) -> Notification:
    if not user_id:
        raise ValueError("user_id is required")
    if type_ not in NOTIFICATION_TYPES:
        raise ValueError(f"unknown notification type {type_!r}")
    if not title or not message:
        raise ValueError("title and message are required")
    db = get_new_session()
    try:
        n = Notification(
            user_id=user_id,
            type=type_,
            title=title[:200],
            message=message,
            link=sanitize_link(link),
            related_entity_type=related_entity_type,
            related_entity_id=related_entity_id,
            is_read=False,
        )
        db.add(n)
        db.commit()
        db.refresh(n)
        db.expunge(n)
    finally:
        db.close()
    try:
        push_hook(n)
    except Exception:
        log.warning("Push delivery failed for notification %s", n.id, exc_info=True)
    return n


def _safe_notify(**kwargs) -> bool:
    try:
        create_notification(**kwargs)
        return True
    except Exception:
        log.warning("Notification dispatch failed type=%s user=%s", kwargs.get("type_"), kwargs.get("user_id"), exc_info=True)
        return False


def _entity_link(entity_type: str, entity_id: str) -> str | None:
    tpl = _ENTITY_PATHS.get(entity_type)
    return tpl.format(id=entity_id) if tpl else None


def staff_user_ids(roles: Iterable[str] = ("admin", "moderator")) -> list[str]:
    db = get_new_session()
    try:
        rows = db.execute(select(User.id).where(User.role.in_(tuple(roles)), User.is_active.is_(True)))
        return [r[0] for r in rows]
    finally:
        db.close()


def notify_content_approved(user_id: str, entity_type: str, name: str, entity_id: str) -> bool:
    return _safe_notify(
        user_id=user_id,
        type_=f"{entity_type}_approved",
        title=f"Your {entity_type} was approved",
        message=f'"{name}" has been approved and is now visible.',
        link=_entity_link(entity_type, entity_id),
        related_entity_type=entity_type,
        related_entity_id=entity_id,
    )


def notify_content_rejected(user_id: str, entity_type: str, reason: str, entity_id: str) -> bool:
    return _safe_notify(
        user_id=user_id,
        type_=f"{entity_type}_rejected",
        title=f"Your {entity_type} was rejected",
        message=f"Reason: {reason}",
        related_entity_type=entity_type,
        related_entity_id=entity_id,
    )


def notify_content_pending_review(user_id: str, entity_type: str, name: str, entity_id: str) -> bool:
    return _safe_notify(
        user_id=user_id,
        type_="content_pending_review",
        title="Submission received",
        message=f'"{name}" is waiting for moderator review.',
        related_entity_type=entity_type,
        related_entity_id=entity_id,
    )


def notify_admins_pending_content(entity_type: str, name: str, submitter: str, entity_id: str) -> int:
    sent = 0
    try:
        recipients = staff_user_ids()
    except Exception:
        log.warning("Could not load staff recipients", exc_info=True)
        return 0
    for uid in recipients:
        sent += _safe_notify(
            user_id=uid,
            type_="new_content_pending",
            title=f"New {entity_type} pending review",
            message=f'{submitter} submitted "{name}".',
            link="/admin/moderation",
            related_entity_type=entity_type,
            related_entity_id=entity_id,
        )
    return sent


def notify_ownership_submitted(user_id: str, establishment_name: str, request_id: str) -> bool:
    return _safe_notify(
        user_id=user_id,
        type_="ownership_request_submitted",
        title="Ownership request submitted",
        message=f'Your ownership request for "{establishment_name}" is under review.',
        link="/my-establishments",
        related_entity_type="ownership_request",
        related_entity_id=request_id,
    )


def notify_admins_new_ownership_request(requester: str, establishment_name: str, request_id: str) -> int:
    sent = 0
    try:
        recipients = staff_user_ids(("admin",))
    except Exception:
        log.warning("Could not load admin recipients", exc_info=True)
        return 0
    for uid in recipients:
        sent += _safe_notify(
            user_id=uid,
            type_="new_ownership_request",
            title="New ownership request",
            message=f'{requester} claims ownership of "{establishment_name}".',
            link="/admin/ownership-requests",
            related_entity_type="ownership_request",
            related_entity_id=request_id,
        )
    return sent


def notify_ownership_reviewed(user_id: str, approved: bool, establishment_name: str, request_id: str, notes: str | None) -> bool:
    if approved:
        return _safe_notify(
            user_id=user_id,
            type_="ownership_request_approved",
            title="Ownership request approved",
            message=f'You now manage "{establishment_name}".',
            link="/my-establishments",
            related_entity_type="ownership_request",
            related_entity_id=request_id,
        )
    return _safe_notify(
        user_id=user_id,
        type_="ownership_request_rejected",
        title="Ownership request rejected",
        message=f'Your request for "{establishment_name}" was rejected. {notes or ""}'.strip(),
        related_entity_type="ownership_request",
        related_entity_id=request_id,
    )


def notify_ownership_assigned(user_id: str, establishment_name: str, establishment_id: str) -> bool:
    return _safe_notify(
        user_id=user_id,
        type_="ownership_assigned",
        title="Establishment assigned",
        message=f'An administrator made you an owner of "{establishment_name}".',
        link="/my-establishments",
        related_entity_type="establishment",
        related_entity_id=establishment_id,
    )


def notify_admins_self_removal(employee_name: str, employee_id: str) -> int:
    sent = 0
    try:
        recipients = staff_user_ids(("admin",))
    except Exception:
        log.warning("Could not load admin recipients", exc_info=True)
        return 0
    for uid in recipients:
        sent += _safe_notify(
            user_id=uid,
            type_="self_removal_request",
            title="Profile removal requested",
            message=f'"{employee_name}" asked for their profile to be removed.',
            link="/admin/employees",
            related_entity_type="employee",
            related_entity_id=employee_id,
        )
    return sent


def notify_admins_new_employee_claim(requester: str, employee_name: str, claim_id: str, *, self_profile: bool) -> int:
    sent = 0
    try:
        recipients = staff_user_ids(("admin",))
    except Exception:
        log.warning("Could not load admin recipients", exc_info=True)
        return 0
    if self_profile:
        message = f'{requester} created their own employee profile "{employee_name}".'
    else:
        message = f'{requester} asked to claim the employee profile "{employee_name}".'
    for uid in recipients:
        sent += _safe_notify(
            user_id=uid,
            type_="new_employee_claim",
            title="New employee claim request",
            message=message,
            link="/admin/employee-claims",
            related_entity_type="employee_claim",
            related_entity_id=claim_id,
        )
    return sent


def notify_employee_claim_reviewed(
    user_id: str, approved: bool, employee_name: str, claim_id: str, notes: str | None, *, self_profile: bool
) -> bool:
    if approved:
        return _safe_notify(
            user_id=user_id,
            type_="employee_claim_approved",
            title="Employee profile approved" if self_profile else "Claim request approved",
            message=f'You can now manage the profile "{employee_name}".',
            link="/my-employee-profile",
            related_entity_type="employee_claim",
            related_entity_id=claim_id,
        )
    return _safe_notify(
        user_id=user_id,
        type_="employee_claim_rejected",
        title="Employee profile rejected" if self_profile else "Claim request rejected",
        message=f'Your request for "{employee_name}" was rejected. Reason: {notes or ""}'.strip(),
        link="/my-claims",
        related_entity_type="employee_claim",
        related_entity_id=claim_id,
    )
