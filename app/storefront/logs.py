"""
Process-wide logging setup. Idempotent, so tests can build many apps.
"""
import logging

from flask import Flask, g, has_request_context

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] [rid=%(request_id)s] %(message)s"

_configured = False


class RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        rid = getattr(g, "request_id", None) if has_request_context() else None
        record.request_id = rid or "-"
        return True


def configure_logging(app: Flask) -> None:
    global _configured
    level_name = str(app.config.get("LOG_LEVEL") or "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)

    if not _configured:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler.addFilter(RequestIdFilter())
        root = logging.getLogger()
        root.addHandler(handler)
        _configured = True

    logging.getLogger().setLevel(level)
    # Let app.logger records flow to the root handler instead of Flask's default one.
    app.logger.handlers.clear()
    app.logger.propagate = True
    app.logger.setLevel(level)
