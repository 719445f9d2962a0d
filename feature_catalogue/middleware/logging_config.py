"""
Logging setup for the catalogue service.

Every record logged while a request is active carries the request id and
the audit actor, so a catalogue mutation can be traced back to the admin
who made it.  Production writes one JSON object per line; development
writes a short plain line.  LOG_LEVEL overrides the default level.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone

from flask import g, has_request_context

from feature_catalogue.auth import current_actor

# Attributes copied from the record into JSON output when present
CONTEXT_FIELDS = ("request_id", "actor", "method", "path", "status", "duration_ms")

QUIET_LOGGERS = ("werkzeug", "sqlalchemy.engine", "openpyxl")


class RequestContextFilter(logging.Filter):
    """Stamp records with ``request_id`` and ``actor`` of the active request."""

    def filter(self, record: logging.LogRecord) -> bool:
        if has_request_context():
            if getattr(record, "request_id", None) is None:
                record.request_id = getattr(g, "request_id", None)
            if getattr(record, "actor", None) is None:
                record.actor = current_actor()
        return True


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key in CONTEXT_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                entry[key] = round(value, 1) if key == "duration_ms" else value
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


class ReadableFormatter(logging.Formatter):
    """``12:00:01 INFO  feature_catalogue.x: message [req=ab12 actor=alice]``"""

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        line = f"{ts} {record.levelname:<5} {record.name}: {record.getMessage()}"

        context = []
        request_id = getattr(record, "request_id", None)
        actor = getattr(record, "actor", None)
        if request_id:
            context.append(f"req={request_id}")
        if actor:
            context.append(f"actor={actor}")
        if context:
            line += f" [{' '.join(context)}]"

        if record.exc_info and record.exc_info[0] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(app):
    """Install one stderr handler on the root logger for *app*'s environment."""
    is_testing = app.config.get("TESTING", False)
    is_prod = not app.config.get("DEBUG", False) and not is_testing

    level_name = os.getenv("LOG_LEVEL", "INFO" if is_prod else "DEBUG").upper()
    level = getattr(logging, level_name, logging.INFO)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if is_prod else ReadableFormatter())
    handler.addFilter(RequestContextFilter())
    handler.setLevel(level)

    root = logging.getLogger()
    # create_app runs once per test session; avoid stacking handlers
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    app.logger.setLevel(level)

    if not is_testing:
        app.logger.info("Logging configured: level=%s json=%s", level_name, is_prod)
