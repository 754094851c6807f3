from __future__ import annotations

from flask import Blueprint, jsonify, request

from . import serializers
from .api_helpers import paged
from .app_authz import current_identity, require_auth
from .db import get_session
from .errors import NotFoundError
from .http_limits import limit
from .models import Notification
from .pagination import page_offset, parse_page_params

bp = Blueprint("notifications_api", __name__, url_prefix="/api/notifications")


@bp.get("")
@require_auth
@limit("notifications")
def list_notifications():
    page_req = parse_page_params(request.args)
    db = get_session()
    q = db.query(Notification).filter(Notification.user_id == current_identity()["user_id"])
    if request.args.get("unread") in ("1", "true", "yes"):
        q = q.filter(Notification.is_read.is_(False))
    total = q.count()
    rows = (
        q.order_by(Notification.created_at.desc(), Notification.id.desc())
        .offset(page_offset(page_req))
        .limit(page_req["size"])
        .all()
    )
    return paged([serializers.notification(n) for n in rows], page_req, total, "notifications")


@bp.get("/unread-count")
@require_auth
@limit("notifications")
def unread_count():
    n = (
        get_session()
        .query(Notification)
        .filter(Notification.user_id == current_identity()["user_id"], Notification.is_read.is_(False))
        .count()
    )
    return jsonify({"ok": True, "count": n})


@bp.patch("/read-all")
@require_auth
def mark_all_read():
    db = get_session()
    updated = (
        db.query(Notification)
        .filter(Notification.user_id == current_identity()["user_id"], Notification.is_read.is_(False))
        .update({"is_read": True}, synchronize_session=False)
    )
    db.commit()
    return jsonify({"ok": True, "updated": updated})


@bp.patch("/<notification_id>/read")
@require_auth
def mark_read(notification_id: str):
    db = get_session()
    n = db.get(Notification, notification_id)
    if n is None or n.user_id != current_identity()["user_id"]:
        raise NotFoundError("Notification not found", code="NOTIFICATION_NOT_FOUND")
    n.is_read = True
    db.commit()
    return jsonify({"ok": True, "notification": serializers.notification(n)})
