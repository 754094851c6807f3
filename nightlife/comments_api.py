from __future__ import annotations

from flask import Blueprint, jsonify

from . import serializers
from .api_helpers import json_body
from .app_authz import current_identity, require_auth
from .db import get_session
from .http_limits import limit
from .moderation_service import create_report

bp = Blueprint("comments_api", __name__, url_prefix="/api/comments")


@bp.post("/<comment_id>/report")
@require_auth
@limit("comment")
def report(comment_id: str):
    r = create_report(get_session(), comment_id, user_id=current_identity()["user_id"], reason=json_body().get("reason"))
    return jsonify({"ok": True, "message": "Comment reported", "report": serializers.report(r)}), 201
