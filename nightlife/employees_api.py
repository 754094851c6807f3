"""Employee profiles: public browsing, submissions, claims, employment, votes, visibility."""

from __future__ import annotations

from flask import Blueprint, jsonify, request

from . import serializers
from .api_helpers import json_body, paged
from .app_authz import current_identity, optional_identity, require_auth
from .cache import CacheKeys, CacheTTL, cache_get, cache_set
from .comment_service import approved_comments, average_rating, create_comment
from .db import get_session
from .employee_claim_service import claim_profile, create_own_profile, my_linked_profile
from .employment_service import (
    add_employment,
    create_employee,
    delete_employee,
    employment_history,
    get_employee,
    list_public,
    request_self_removal,
    update_employee,
    visible_to,
)
from .errors import NotFoundError
from .http_limits import limit
from .pagination import parse_page_params
from .roles import is_staff
from .validation_service import cast_vote, set_visibility, vote_stats

bp = Blueprint("employees_api", __name__, url_prefix="/api/employees")


def _visible_employee(employee_id: str):
    ident = optional_identity()
    db = get_session()
    emp = get_employee(db, employee_id)
    if not visible_to(emp, ident["role"] if ident else None):
        raise NotFoundError("Employee not found", code="EMPLOYEE_NOT_FOUND")
    return db, emp, ident


@bp.get("")
@limit("search")
def list_employees():
    page_req = parse_page_params(request.args)
    result = list_public(
        get_session(),
        page_req=page_req,
        establishment_id=request.args.get("establishment_id") or None,
        q=(request.args.get("q") or "").strip() or None,
    )
    return paged(result["items"], page_req, result["total"], "employees")


@bp.get("/my-linked-profile")
@require_auth
def linked_profile():
    return jsonify({"ok": True, "employee": my_linked_profile(get_session(), current_identity()["user_id"])})


@bp.post("/my-profile")
@require_auth
@limit("api")
def create_my_profile():
    emp = create_own_profile(get_session(), user_id=current_identity()["user_id"], data=json_body())
    return (
        jsonify(
            {
                "ok": True,
                "message": "Your employee profile has been created and is pending approval",
                "employee": serializers.employee(emp),
                "linked": True,
            }
        ),
        201,
    )


@bp.get("/<employee_id>")
def get_employee_detail(employee_id: str):
    db, emp, ident = _visible_employee(employee_id)
    staff = bool(ident and is_staff(ident["role"]))
    key = CacheKeys.employee(emp.id)
    if not staff:
        cached = cache_get(key)
        if cached is not None:
            return jsonify({"ok": True, "employee": cached})
    data = serializers.employee(emp, include_private=staff)
    data["employment_history"] = [serializers.employment(r) for r in employment_history(db, emp.id)]
    data["average_rating"] = average_rating(db, emp.id)
    data["validation"] = vote_stats(db, emp.id)
    if not staff:
        cache_set(key, data, CacheTTL.DETAIL)
    return jsonify({"ok": True, "employee": data})


@bp.post("")
@require_auth
@limit("api")
def create():
    emp = create_employee(get_session(), user_id=current_identity()["user_id"], data=json_body())
    return (
        jsonify({"ok": True, "message": "Employee profile submitted for review", "employee": serializers.employee(emp)}),
        201,
    )


@bp.put("/<employee_id>")
@require_auth
@limit("api")
def update(employee_id: str):
    ident = current_identity()
    emp = update_employee(get_session(), employee_id, user_id=ident["user_id"], role=ident["role"], data=json_body())
    return jsonify({"ok": True, "employee": serializers.employee(emp)})


@bp.delete("/<employee_id>")
@require_auth
def delete(employee_id: str):
    ident = current_identity()
    delete_employee(get_session(), employee_id, user_id=ident["user_id"], role=ident["role"])
    return jsonify({"ok": True, "message": "Employee deleted"})


@bp.post("/<employee_id>/employment")
@require_auth
@limit("api")
def create_employment(employee_id: str):
    ident = current_identity()
    row = add_employment(get_session(), employee_id, user_id=ident["user_id"], role=ident["role"], data=json_body())
    return jsonify({"ok": True, "employment": serializers.employment(row)}), 201


@bp.post("/<employee_id>/request-removal")
@require_auth
@limit("api")
def request_removal(employee_id: str):
    data = json_body()
    request_self_removal(
        get_session(),
        employee_id,
        user_id=current_identity()["user_id"],
        verification_info=data.get("verification_info"),
    )
    return jsonify({"ok": True, "message": "Removal request submitted"})


@bp.post("/<employee_id>/claim")
@require_auth
@limit("api")
def claim(employee_id: str):
    data = json_body()
    item = claim_profile(
        get_session(),
        employee_id,
        user_id=current_identity()["user_id"],
        message=data.get("message"),
        verification_proof=data.get("verification_proof"),
    )
    return (
        jsonify({"ok": True, "message": "Claim request submitted for review", "claim_id": item.id}),
        201,
    )


@bp.patch("/<employee_id>/visibility")
@require_auth
@limit("api")
def visibility(employee_id: str):
    ident = current_identity()
    data = json_body()
    emp = set_visibility(
        get_session(),
        employee_id,
        user_id=ident["user_id"],
        role=ident["role"],
        is_hidden=data.get("isHidden"),
        reason=data.get("reason"),
    )
    return jsonify({"ok": True, "employee": serializers.employee(emp, include_private=True)})


@bp.post("/<employee_id>/votes")
@require_auth
@limit("votes")
def vote(employee_id: str):
    ident = current_identity()
    db, emp, _ = _visible_employee(employee_id)
    v = cast_vote(db, emp.id, user_id=ident["user_id"], vote_type=json_body().get("vote_type"))
    return jsonify({"ok": True, "vote": {"id": v.id, "vote_type": v.vote_type}, "stats": vote_stats(db, emp.id, user_id=ident["user_id"])}), 201


@bp.get("/<employee_id>/votes/stats")
def votes_stats(employee_id: str):
    db, emp, ident = _visible_employee(employee_id)
    return jsonify({"ok": True, "stats": vote_stats(db, emp.id, user_id=ident["user_id"] if ident else None)})


@bp.get("/<employee_id>/comments")
def comments(employee_id: str):
    db, emp, _ = _visible_employee(employee_id)
    items = approved_comments(db, emp.id)
    return jsonify({"ok": True, "comments": items, "total": len(items)})


@bp.post("/<employee_id>/comments")
@require_auth
@limit("comment")
def post_comment(employee_id: str):
    ident = current_identity()
    c = create_comment(get_session(), employee_id, user_id=ident["user_id"], role=ident["role"], data=json_body())
    return jsonify({"ok": True, "message": "Comment submitted for review", "comment": serializers.comment(c)}), 201
