"""Logging setup: the structured request logger and the support log ring buffer.

SupportLogHandler captures WARN+ records with the current request_id into an
in-memory deque that admins can read at /api/admin/support/logs.
"""

from __future__ import annotations

import collections
import logging
import time

from flask import g, has_request_context, request

LOG_BUFFER: collections.deque[dict] = collections.deque(maxlen=500)

REQUEST_LOGGER = "nightlife"


class SupportLogHandler(logging.Handler):
    def emit(self, record: logging.LogRecord) -> None:  # type: ignore[override]
        try:
            rid = getattr(g, "request_id", "-") if has_request_context() else "-"
            path = request.path if has_request_context() else "-"
        except RuntimeError:
            rid = "-"
            path = "-"
        LOG_BUFFER.append(
            {
                "ts": time.time(),
                "level": record.levelname,
                "logger": record.name,
                "msg": self.format(record),
                "request_id": rid,
                "path": path,
            }
        )


def install_support_log_handler() -> None:
    root = logging.getLogger()
    if any(isinstance(h, SupportLogHandler) for h in root.handlers):
        return
    h = SupportLogHandler(level=logging.WARNING)
    h.setFormatter(logging.Formatter("%(message)s"))
    root.addHandler(h)


def request_logger() -> logging.Logger:
    log = logging.getLogger(REQUEST_LOGGER)
    if not log.handlers:
        h = logging.StreamHandler()
        h.setFormatter(logging.Formatter("%(message)s"))
        log.addHandler(h)
    log.setLevel(logging.INFO)
    return log


def recent_logs(limit: int = 100, level: str | None = None) -> list[dict]:
    items = list(LOG_BUFFER)
    if level:
        items = [i for i in items if i["level"] == level.upper()]
    return items[-limit:][::-1]


__all__ = ["LOG_BUFFER", "SupportLogHandler", "install_support_log_handler", "request_logger", "recent_logs"]
