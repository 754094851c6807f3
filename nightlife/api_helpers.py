"""Small request/response helpers shared by the API blueprints."""
from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from flask import current_app, jsonify, request
from werkzeug.wrappers.response import Response

from .errors import ValidationError
from .pagination import PageRequest, make_page_response


def json_body() -> dict[str, Any]:
    """Parsed JSON object body; an empty body reads as {}."""
    if not request.data:
        return {}
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("JSON object body required", code="INVALID_JSON")
    return data


def strict_transitions() -> bool:
    return bool(current_app.config.get("STRICT_MODERATION_TRANSITIONS"))


def paged(items: Sequence[Any], page_req: PageRequest, total: int, alias: str) -> Response:
    """{ok, items, meta} plus the same list under a plural alias key."""
    resp = dict(make_page_response(items, page_req, total))
    resp[alias] = resp["items"]
    return jsonify(resp)
