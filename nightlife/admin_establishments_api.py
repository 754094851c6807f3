"""Admin establishment endpoints.

Every `:id` accepts a UUID or a legacy numeric id (see legacy_ids).
"""

from __future__ import annotations

from flask import Blueprint, jsonify, request

from . import serializers
from .api_helpers import json_body, strict_transitions
from .app_authz import current_identity, require_roles
from .db import get_session
from .establishment_service import (
    add_consumable,
    admin_list,
    admin_update,
    delete_consumable,
    delete_establishment,
    list_consumables,
    update_consumable,
    validate_admin_payload,
)
from .http_limits import limit
from .models import ConsumableTemplate
from .moderation_service import approve_entity, reject_entity, resolve_establishment
from .ownership_service import assign_owner, list_owners, remove_owner, update_owner

bp = Blueprint("admin_establishments_api", __name__, url_prefix="/api/admin/establishments")


@bp.get("")
@require_roles("admin", "moderator")
@limit("admin")
def list_establishments():
    status = request.args.get("status") or None
    items = admin_list(get_session(), status)
    return jsonify({"ok": True, "establishments": items, "total": len(items)})


@bp.put("/<identifier>")
@require_roles("admin")
@limit("admin")
def update_establishment(identifier: str):
    data = validate_admin_payload(json_body())
    db = get_session()
    est = resolve_establishment(db, identifier)
    est = admin_update(db, est, admin_id=current_identity()["user_id"], data=data)
    return jsonify({"ok": True, "establishment": serializers.establishment(est)})


@bp.post("/<identifier>/approve")
@require_roles("admin", "moderator")
@limit("admin")
def approve(identifier: str):
    est = approve_entity(
        get_session(),
        "establishment",
        identifier,
        moderator_id=current_identity()["user_id"],
        strict=strict_transitions(),
    )
    return jsonify({"ok": True, "establishment": serializers.establishment(est)})


@bp.post("/<identifier>/reject")
@require_roles("admin", "moderator")
@limit("admin")
def reject(identifier: str):
    data = json_body()
    est = reject_entity(
        get_session(),
        "establishment",
        identifier,
        data.get("reason"),
        moderator_id=current_identity()["user_id"],
        strict=strict_transitions(),
    )
    return jsonify({"ok": True, "establishment": serializers.establishment(est)})


@bp.delete("/<identifier>")
@require_roles("admin")
@limit("admin_critical")
def delete(identifier: str):
    db = get_session()
    est = resolve_establishment(db, identifier)
    snapshot = delete_establishment(db, est, admin_id=current_identity()["user_id"])
    return jsonify({"ok": True, "message": "Establishment deleted successfully", "establishment": snapshot})


# --- Consumables ---
@bp.get("/<identifier>/consumables")
@require_roles("admin", "moderator")
def consumables(identifier: str):
    db = get_session()
    est = resolve_establishment(db, identifier)
    return jsonify({"ok": True, "consumables": list_consumables(db, est)})


@bp.post("/<identifier>/consumables")
@require_roles("admin")
@limit("admin")
def create_consumable(identifier: str):
    db = get_session()
    est = resolve_establishment(db, identifier)
    row = add_consumable(db, est, json_body())
    return jsonify({"ok": True, "consumable": serializers.consumable(row, db.get(ConsumableTemplate, row.consumable_id))}), 201


@bp.put("/<identifier>/consumables/<int:cid>")
@require_roles("admin")
@limit("admin")
def edit_consumable(identifier: str, cid: int):
    db = get_session()
    est = resolve_establishment(db, identifier)
    row = update_consumable(db, est, cid, json_body())
    return jsonify({"ok": True, "consumable": serializers.consumable(row, db.get(ConsumableTemplate, row.consumable_id))})


@bp.delete("/<identifier>/consumables/<int:cid>")
@require_roles("admin")
@limit("admin")
def remove_consumable(identifier: str, cid: int):
    db = get_session()
    est = resolve_establishment(db, identifier)
    delete_consumable(db, est, cid)
    return jsonify({"ok": True})


# --- Owners ---
@bp.get("/<identifier>/owners")
@require_roles("admin")
def owners(identifier: str):
    db = get_session()
    est = resolve_establishment(db, identifier)
    items = list_owners(db, est.id)
    return jsonify({"ok": True, "owners": items, "total": len(items)})


@bp.post("/<identifier>/owners")
@require_roles("admin")
@limit("admin_critical")
def add_owner(identifier: str):
    data = json_body()
    db = get_session()
    est = resolve_establishment(db, identifier)
    link = assign_owner(
        db,
        est,
        user_id=data.get("user_id"),
        admin_id=current_identity()["user_id"],
        permissions=data.get("permissions"),
        owner_role=data.get("owner_role"),
    )
    return jsonify({"ok": True, "ownership": serializers.owner_link(link)}), 201


@bp.delete("/<identifier>/owners/<user_id>")
@require_roles("admin")
@limit("admin_critical")
def delete_owner(identifier: str, user_id: str):
    db = get_session()
    est = resolve_establishment(db, identifier)
    remove_owner(db, est, user_id, admin_id=current_identity()["user_id"])
    return jsonify({"ok": True, "message": "Ownership removed"})


@bp.patch("/<identifier>/owners/<user_id>")
@require_roles("admin")
@limit("admin")
def patch_owner(identifier: str, user_id: str):
    data = json_body()
    db = get_session()
    est = resolve_establishment(db, identifier)
    link = update_owner(
        db,
        est,
        user_id,
        admin_id=current_identity()["user_id"],
        permissions=data.get("permissions"),
        owner_role=data.get("owner_role"),
    )
    return jsonify({"ok": True, "ownership": serializers.owner_link(link)})
