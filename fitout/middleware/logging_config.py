"""
Logging setup for the fit-out API.

Every record passes through ``RequestContextFilter``, which stamps it with
the request id, acting user and project of the current request (``-`` outside
a request). Production writes one JSON object per line; development and tests
get a short colored line.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone

from flask import g, has_request_context, request

CONTEXT_FIELDS = ("request_id", "user_id", "project_id")
JSON_EXTRAS = ("method", "path", "status", "duration_ms")


class RequestContextFilter(logging.Filter):
    """Attach request_id / user_id / project_id to every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        if has_request_context():
            record.request_id = getattr(g, "request_id", "-")
            record.user_id = getattr(g, "current_user_id", None) or "-"
            record.project_id = (request.view_args or {}).get("project_id", "-")
        else:
            for field in CONTEXT_FIELDS:
                if not hasattr(record, field):
                    setattr(record, field, "-")
        return True


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for field in CONTEXT_FIELDS + JSON_EXTRAS:
            value = getattr(record, field, None)
            if value not in (None, "-"):
                entry[field] = value
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class ReadableFormatter(logging.Formatter):
    LEVEL_COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno, "")
        stamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        rid = getattr(record, "request_id", "-")
        line = f"{color}{stamp} {record.levelname:<7}{self.RESET} [{rid}] {record.name}: {record.getMessage()}"
        if record.exc_info and record.exc_info[0] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def _default_level(app) -> str:
    if app.config.get("TESTING"):
        return "WARNING"
    return "DEBUG" if app.config.get("DEBUG") else "INFO"


def configure_logging(app):
    """Install one stderr handler on the root logger for this app.

    Level comes from ``LOG_LEVEL`` (config or env); the handler list is reset
    so building several apps in one process does not duplicate output.
    """
    level_name = (app.config.get("LOG_LEVEL") or os.getenv("LOG_LEVEL") or _default_level(app)).upper()
    level = getattr(logging, level_name, logging.INFO)
    json_output = not app.config.get("DEBUG") and not app.config.get("TESTING")

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if json_output else ReadableFormatter())
    handler.addFilter(RequestContextFilter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)
    app.logger.setLevel(level)

    for name in ("werkzeug", "sqlalchemy.engine", "urllib3", "httpx", "openpyxl"):
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).debug("Logging ready level=%s json=%s", level_name, json_output)
