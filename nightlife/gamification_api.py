from __future__ import annotations

from flask import Blueprint, jsonify

from .app_authz import current_identity, require_auth
from .db import get_session
from .gamification_service import get_points
from .models import XPTransaction

bp = Blueprint("gamification_api", __name__, url_prefix="/api/gamification")


@bp.get("/me")
@require_auth
def me():
    user_id = current_identity()["user_id"]
    recent = (
        get_session()
        .query(XPTransaction)
        .filter(XPTransaction.user_id == user_id)
        .order_by(XPTransaction.created_at.desc(), XPTransaction.id.desc())
        .limit(20)
        .all()
    )
    return jsonify(
        {
            "ok": True,
            "points": get_points(user_id),
            "recent_transactions": [
                {
                    "xp_amount": t.xp_amount,
                    "reason": t.reason,
                    "entity_type": t.entity_type,
                    "entity_id": t.entity_id,
                    "description": t.description,
                    "created_at": t.created_at.isoformat() if t.created_at else None,
                }
                for t in recent
            ],
        }
    )
