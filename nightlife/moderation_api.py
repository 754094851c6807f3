from __future__ import annotations

from flask import Blueprint, jsonify, request

from . import serializers
from .api_helpers import json_body
from .app_authz import current_identity, require_roles
from .db import get_session
from .errors import ValidationError
from .http_limits import limit
from .models import MODERATION_STATUSES, REPORT_STATUSES
from .moderation_service import ENTITY_MODELS, list_queue, list_reports, queue_stats, resolve_report, review_queue_item

bp = Blueprint("moderation_api", __name__, url_prefix="/api/moderation")


@bp.get("/queue")
@require_roles("admin", "moderator")
def queue():
    status = request.args.get("status") or "pending"
    item_type = request.args.get("item_type") or None
    if status != "all" and status not in MODERATION_STATUSES:
        raise ValidationError("Invalid status", code="INVALID_STATUS")
    if item_type and item_type not in (*ENTITY_MODELS, "employee_claim"):
        raise ValidationError("Invalid item_type", code="INVALID_ITEM_TYPE")
    try:
        size = min(max(int(request.args.get("limit", "50")), 1), 200)
    except ValueError as e:
        raise ValidationError("limit must be an integer") from e
    items = list_queue(get_session(), status=status, item_type=item_type, limit=size)
    return jsonify({"ok": True, "items": items, "total": len(items)})


@bp.get("/stats")
@require_roles("admin", "moderator")
def stats():
    return jsonify({"ok": True, "stats": queue_stats(get_session())})


@bp.put("/<queue_id>/approve")
@require_roles("admin", "moderator")
@limit("admin")
def approve(queue_id: str):
    item = review_queue_item(
        get_session(),
        queue_id,
        approve=True,
        moderator_id=current_identity()["user_id"],
        notes=json_body().get("moderator_notes"),
    )
    return jsonify({"ok": True, "item": serializers.queue_item(item)})


@bp.put("/<queue_id>/reject")
@require_roles("admin", "moderator")
@limit("admin")
def reject(queue_id: str):
    item = review_queue_item(
        get_session(),
        queue_id,
        approve=False,
        moderator_id=current_identity()["user_id"],
        notes=json_body().get("moderator_notes"),
    )
    return jsonify({"ok": True, "item": serializers.queue_item(item)})


@bp.get("/reports")
@require_roles("admin", "moderator")
def reports():
    status = request.args.get("status") or "pending"
    if status != "all" and status not in REPORT_STATUSES:
        raise ValidationError("Invalid status", code="INVALID_STATUS")
    items = list_reports(get_session(), status=status)
    return jsonify({"ok": True, "reports": items, "total": len(items)})


@bp.put("/reports/<report_id>/resolve")
@require_roles("admin", "moderator")
@limit("admin")
def resolve(report_id: str):
    report = resolve_report(
        get_session(),
        report_id,
        action=json_body().get("action"),
        moderator_id=current_identity()["user_id"],
    )
    return jsonify({"ok": True, "report": serializers.report(report)})
