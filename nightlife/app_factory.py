"""Flask application factory.

Provides:
 - App factory with configuration override
 - DB engine and cache backend initialization
 - Security middleware, rate limits and the JSON error envelope
 - Structured per-request logging with request ids
 - Blueprint registration for the directory API
"""

from __future__ import annotations

import os
import time
import uuid
from typing import Any

from dotenv import load_dotenv
from flask import Flask, g, request, session
from werkzeug.wrappers.response import Response

from . import limit_registry
from .admin_api import bp as admin_api_bp
from .admin_establishments_api import bp as admin_establishments_bp
from .auth import bp as auth_bp
from .cache import init_cache
from .comments_api import bp as comments_bp
from .config import Config
from .db import init_engine, remove_session
from .employees_api import bp as employees_bp
from .errors import register_error_handlers
from .establishments_api import bp as establishments_bp
from .gamification_api import bp as gamification_bp
from .health_api import bp as health_bp
from .logging_setup import install_support_log_handler, request_logger
from .metrics import set_metrics
from .metrics_logging import LoggingMetrics
from .moderation_api import bp as moderation_bp
from .notifications_api import bp as notifications_bp
from .ownership_requests_api import bp as ownership_requests_bp
from .security import init_security


def create_app(config_override: dict[str, Any] | None = None) -> Flask:
    load_dotenv()
    app = Flask(__name__)

    # --- Configuration ---
    cfg = Config.from_env()
    if config_override:
        known = {k: v for k, v in config_override.items() if hasattr(cfg, k)}
        if known:
            cfg.override(known)
    app.config.update(cfg.to_flask_dict())
    if config_override:
        for k, v in config_override.items():  # direct Flask config keys win
            if k.isupper():
                app.config[k] = v

    # --- DB + cache ---
    init_engine(cfg.database_url, force=bool(app.config.get("FORCE_DB_REINIT")))
    init_cache(app.config.get("CACHE_BACKEND", cfg.cache_backend), app.config.get("REDIS_URL"))

    # --- Security middleware (CORS, CSRF, headers) ---
    init_security(app)

    # --- Metrics backend wiring ---
    backend = app.config.get("METRICS_BACKEND") or "noop"
    if backend == "log":
        set_metrics(LoggingMetrics())
        app.logger.info("Metrics backend initialized: log")

    # --- Error handling ---
    register_error_handlers(app)

    log = request_logger()

    @app.before_request
    def _before_req() -> Response | None:
        if app.config.get("TESTING"):
            role = request.headers.get("X-User-Role")
            uid = request.headers.get("X-User-Id")
            if role:
                session["role"] = role
                session["user_id"] = uid or "test-user"
        g._t0 = time.perf_counter()
        g.request_id = request.headers.get("X-Request-Id") or str(uuid.uuid4())
        return None

    @app.after_request
    def _after_req(resp: Response) -> Response:
        dur_ms = int((time.perf_counter() - getattr(g, "_t0", time.perf_counter())) * 1000)
        rid = getattr(g, "request_id", None) or str(uuid.uuid4())
        resp.headers["X-Request-Id"] = rid
        resp.headers["X-Request-Duration-ms"] = str(dur_ms)
        if "Cache-Control" not in resp.headers:
            resp.headers["Cache-Control"] = "no-store"
        log.info(
            {
                "request_id": rid,
                "user_id": session.get("user_id"),
                "role": session.get("role"),
                "method": request.method,
                "path": request.path,
                "status": resp.status_code,
                "duration_ms": dur_ms,
            }
        )
        return resp

    @app.teardown_appcontext
    def _teardown(_exc: BaseException | None) -> None:
        remove_session()

    # --- Register blueprints ---
    app.register_blueprint(auth_bp)
    app.register_blueprint(health_bp)
    app.register_blueprint(admin_api_bp)
    app.register_blueprint(admin_establishments_bp)
    app.register_blueprint(moderation_bp)
    app.register_blueprint(ownership_requests_bp)
    app.register_blueprint(establishments_bp)
    app.register_blueprint(employees_bp)
    app.register_blueprint(comments_bp)
    app.register_blueprint(notifications_bp)
    app.register_blueprint(gamification_bp)

    limit_registry.refresh(app.config.get("RATE_LIMITS_JSON") or os.getenv("RATE_LIMITS_JSON", ""))

    install_support_log_handler()
    return app


__all__ = ["create_app"]
