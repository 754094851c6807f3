from __future__ import annotations

from typing import Any

from flask import Blueprint, current_app
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from .cache import get_cache
from .db import get_session

bp = Blueprint("health_api", __name__)


@bp.get("/health")
def health() -> tuple[dict[str, Any], int]:
    db_ok = True
    try:
        get_session().execute(text("SELECT 1"))
    except SQLAlchemyError:
        current_app.logger.warning("Health check: database unreachable", exc_info=True)
        db_ok = False
    body = {
        "status": "ok" if db_ok else "degraded",
        "database": "ok" if db_ok else "error",
        "cache": type(get_cache()).__name__,
    }
    return body, 200 if db_ok else 503
