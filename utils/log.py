import logging
import uuid

from flask import g, has_request_context, request

LOG_FORMAT = "%(asctime)s %(levelname)s [%(request_id)s] %(name)s: %(message)s"


class RequestIdFilter(logging.Filter):
    def filter(self, record):
        record.request_id = current_request_id()
        return True


def ensure_request_id() -> str:
    """Bind the request id for this request: the caller's X-Request-Id or a fresh one."""
    incoming = str(request.headers.get("X-Request-Id") or "").strip()
    g.request_id = incoming or uuid.uuid4().hex
    return g.request_id


def current_request_id() -> str:
    if has_request_context():
        return str(getattr(g, "request_id", "") or "-")
    return "-"


def configure_logging(app) -> None:
    level_name = str(app.config.get("LOG_LEVEL", "INFO")).strip().upper()
    level = getattr(logging, level_name, logging.INFO)

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(RequestIdFilter())

    app.logger.handlers = [handler]
    app.logger.setLevel(level)
    app.logger.propagate = False
