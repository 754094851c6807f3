from __future__ import annotations

from flask import Blueprint, jsonify, request

from . import serializers
from .api_helpers import json_body
from .app_authz import current_identity, require_auth, require_roles
from .db import get_session
from .http_limits import limit
from .ownership_service import (
    approve_request,
    cancel_request,
    create_request,
    list_all_requests,
    list_my_requests,
    reject_request,
)

bp = Blueprint("ownership_requests_api", __name__, url_prefix="/api/ownership-requests")


@bp.post("")
@require_auth
@limit("api")
def create():
    req, est, is_new = create_request(get_session(), user_id=current_identity()["user_id"], payload=json_body())
    body = serializers.ownership_request(req)
    body["establishment"] = serializers.establishment_summary(est)
    return (
        jsonify(
            {
                "ok": True,
                "message": "Ownership request submitted successfully",
                "request": body,
                "isNewEstablishment": is_new,
            }
        ),
        201,
    )


@bp.get("/my")
@require_auth
def my_requests():
    items = list_my_requests(get_session(), current_identity()["user_id"])
    return jsonify({"ok": True, "requests": items, "total": len(items)})


@bp.get("/admin/all")
@require_roles("admin")
def all_requests():
    items = list_all_requests(get_session(), request.args.get("status") or None)
    return jsonify({"ok": True, "requests": items, "total": len(items)})


@bp.patch("/<request_id>/approve")
@require_roles("admin")
@limit("admin_critical")
def approve(request_id: str):
    data = json_body()
    req, link = approve_request(
        get_session(),
        request_id,
        admin_id=current_identity()["user_id"],
        permissions=data.get("permissions"),
        owner_role=data.get("owner_role"),
        admin_notes=data.get("admin_notes"),
    )
    return jsonify(
        {
            "ok": True,
            "message": "Ownership request approved",
            "request": serializers.ownership_request(req),
            "ownership": serializers.owner_link(link),
        }
    )


@bp.patch("/<request_id>/reject")
@require_roles("admin")
@limit("admin_critical")
def reject(request_id: str):
    req = reject_request(
        get_session(),
        request_id,
        admin_id=current_identity()["user_id"],
        admin_notes=json_body().get("admin_notes"),
    )
    return jsonify({"ok": True, "message": "Ownership request rejected", "request": serializers.ownership_request(req)})


@bp.delete("/<request_id>")
@require_auth
def cancel(request_id: str):
    cancel_request(get_session(), request_id, user_id=current_identity()["user_id"])
    return jsonify({"ok": True, "message": "Ownership request cancelled"})
