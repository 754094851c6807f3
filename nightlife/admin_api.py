"""Admin API: dashboard, employee, claim and comment moderation, support logs.

Establishment administration lives in admin_establishments_api.
"""

from __future__ import annotations

from flask import Blueprint, jsonify, request

from . import serializers
from .api_helpers import json_body, strict_transitions
from .app_authz import current_identity, require_roles
from .db import get_session
from .employee_claim_service import approve_claim, list_claims, reject_claim
from .employment_service import admin_update_employee, employment_history, get_employee
from .errors import ValidationError
from .http_limits import limit
from .logging_setup import recent_logs
from .models import MODERATION_STATUSES, Comment, Employee, Report, User
from .moderation_service import approve_entity, dashboard_stats, reject_entity

bp = Blueprint("admin_api", __name__, url_prefix="/api/admin")


@bp.get("/dashboard-stats")
@require_roles("admin", "moderator")
@limit("admin")
def get_dashboard_stats():
    return jsonify({"ok": True, "stats": dashboard_stats(get_session())})


# --- Employees ---
@bp.get("/employees")
@require_roles("admin", "moderator")
@limit("admin")
def list_employees():
    status = request.args.get("status") or None
    db = get_session()
    q = db.query(Employee)
    if status and status != "all":
        q = q.filter(Employee.status == status)
    rows = q.order_by(Employee.created_at.desc()).all()
    items = []
    for emp in rows:
        data = serializers.employee(emp, include_private=True)
        data["creator"] = serializers.user_summary(db.get(User, emp.created_by)) if emp.created_by else None
        items.append(data)
    return jsonify({"ok": True, "employees": items, "total": len(items)})


@bp.get("/employees/<employee_id>")
@require_roles("admin", "moderator")
def get_employee_detail(employee_id: str):
    db = get_session()
    emp = get_employee(db, employee_id)
    data = serializers.employee(emp, include_private=True)
    data["employment_history"] = [serializers.employment(r) for r in employment_history(db, emp.id)]
    return jsonify({"ok": True, "employee": data})


@bp.put("/employees/<employee_id>")
@require_roles("admin")
@limit("admin")
def update_employee(employee_id: str):
    emp = admin_update_employee(get_session(), employee_id, admin_id=current_identity()["user_id"], data=json_body())
    return jsonify({"ok": True, "employee": serializers.employee(emp, include_private=True)})


@bp.post("/employees/<employee_id>/approve")
@require_roles("admin", "moderator")
@limit("admin")
def approve_employee(employee_id: str):
    emp = approve_entity(
        get_session(),
        "employee",
        employee_id,
        moderator_id=current_identity()["user_id"],
        strict=strict_transitions(),
    )
    return jsonify({"ok": True, "employee": serializers.employee(emp, include_private=True)})


@bp.post("/employees/<employee_id>/reject")
@require_roles("admin", "moderator")
@limit("admin")
def reject_employee(employee_id: str):
    emp = reject_entity(
        get_session(),
        "employee",
        employee_id,
        json_body().get("reason"),
        moderator_id=current_identity()["user_id"],
        strict=strict_transitions(),
    )
    return jsonify({"ok": True, "employee": serializers.employee(emp, include_private=True)})


# --- Comments ---
@bp.get("/comments")
@require_roles("admin", "moderator")
@limit("admin")
def list_comments():
    status = request.args.get("status") or None
    db = get_session()
    q = db.query(Comment)
    if status and status != "all":
        q = q.filter(Comment.status == status)
    items = []
    for c in q.order_by(Comment.created_at.desc()).all():
        data = serializers.comment(c)
        data["user"] = serializers.user_summary(db.get(User, c.user_id))
        data["pending_reports"] = (
            db.query(Report).filter(Report.comment_id == c.id, Report.status == "pending").count()
        )
        items.append(data)
    return jsonify({"ok": True, "comments": items, "total": len(items)})


@bp.post("/comments/<comment_id>/approve")
@require_roles("admin", "moderator")
@limit("admin")
def approve_comment(comment_id: str):
    c = approve_entity(
        get_session(),
        "comment",
        comment_id,
        moderator_id=current_identity()["user_id"],
        strict=strict_transitions(),
    )
    return jsonify({"ok": True, "comment": serializers.comment(c)})


@bp.post("/comments/<comment_id>/reject")
@require_roles("admin", "moderator")
@limit("admin")
def reject_comment(comment_id: str):
    c = reject_entity(
        get_session(),
        "comment",
        comment_id,
        json_body().get("reason"),
        moderator_id=current_identity()["user_id"],
        strict=strict_transitions(),
    )
    return jsonify({"ok": True, "comment": serializers.comment(c)})


# --- Employee claims ---
@bp.get("/employee-claims")
@require_roles("admin", "moderator")
@limit("admin")
def employee_claims():
    status = request.args.get("status") or "pending"
    if status != "all" and status not in MODERATION_STATUSES:
        raise ValidationError("Invalid status", code="INVALID_STATUS")
    claims = list_claims(get_session(), status=status)
    return jsonify({"ok": True, "claims": claims, "total": len(claims)})


@bp.post("/employee-claims/<claim_id>/approve")
@require_roles("admin")
@limit("admin")
def approve_employee_claim(claim_id: str):
    item = approve_claim(
        get_session(),
        claim_id,
        moderator_id=current_identity()["user_id"],
        notes=json_body().get("moderator_notes"),
    )
    return jsonify({"ok": True, "message": "Claim request approved", "claim": serializers.queue_item(item)})


@bp.post("/employee-claims/<claim_id>/reject")
@require_roles("admin")
@limit("admin")
def reject_employee_claim(claim_id: str):
    item = reject_claim(
        get_session(),
        claim_id,
        moderator_id=current_identity()["user_id"],
        notes=json_body().get("moderator_notes"),
    )
    return jsonify({"ok": True, "message": "Claim request rejected", "claim": serializers.queue_item(item)})


# --- Support ---
@bp.get("/support/logs")
@require_roles("admin")
def support_logs():
    try:
        n = int(request.args.get("limit", "100"))
    except ValueError:
        n = 100
    items = recent_logs(max(1, min(n, 500)), request.args.get("level"))
    return jsonify({"ok": True, "logs": items, "total": len(items)})
