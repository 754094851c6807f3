from __future__ import annotations

from flask import Blueprint, jsonify, request

from . import serializers
from .api_helpers import json_body, paged
from .app_authz import current_identity, optional_identity, require_auth
from .db import get_session
from .establishment_service import create_establishment, get_public, list_categories, list_public, owner_update
from .http_limits import limit
from .moderation_service import resolve_establishment
from .ownership_service import owned_establishments
from .pagination import parse_page_params

bp = Blueprint("establishments_api", __name__, url_prefix="/api/establishments")


@bp.get("")
@limit("search")
def list_establishments():
    page_req = parse_page_params(request.args)
    result = list_public(
        get_session(),
        page_req=page_req,
        category_id=request.args.get("category_id"),
        zone=request.args.get("zone") or None,
        q=(request.args.get("q") or "").strip() or None,
    )
    return paged(result["items"], page_req, result["total"], "establishments")


@bp.get("/categories")
def categories():
    return jsonify({"ok": True, "categories": list_categories(get_session())})


@bp.get("/my-owned")
@require_auth
def my_owned():
    items = owned_establishments(get_session(), current_identity()["user_id"])
    return jsonify({"ok": True, "establishments": items, "total": len(items)})


@bp.get("/<identifier>")
def get_establishment(identifier: str):
    ident = optional_identity()
    db = get_session()
    est = resolve_establishment(db, identifier)
    return jsonify({"ok": True, "establishment": get_public(db, est, role=ident["role"] if ident else None)})


@bp.post("")
@require_auth
@limit("api")
def create():
    ident = current_identity()
    est = create_establishment(get_session(), user_id=ident["user_id"], role=ident["role"], data=json_body())
    message = "Establishment created" if est.status == "approved" else "Establishment submitted for review"
    return jsonify({"ok": True, "message": message, "establishment": serializers.establishment(est)}), 201


@bp.put("/<identifier>")
@require_auth
@limit("api")
def update(identifier: str):
    ident = current_identity()
    db = get_session()
    est = resolve_establishment(db, identifier)
    est = owner_update(db, est, user_id=ident["user_id"], role=ident["role"], data=json_body())
    return jsonify({"ok": True, "establishment": serializers.establishment(est)})
