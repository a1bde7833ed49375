"""
Structured logging configuration.

- Every record emitted inside a request carries ``request_id`` and
  ``user_id`` (stamped by RequestContextFilter), so service-level events
  such as "Coverage updated" can be joined with the access log line.
- Development / testing: one readable line per record, context as key=value
- Production: one JSON object per line; any ``extra={...}`` field is kept
- Log level: controlled via LOG_LEVEL env variable
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone

from flask import g, has_request_context

# Attributes every LogRecord has; anything else was passed via ``extra``
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}

# Shown after the message by ReadableFormatter, in this order
CONTEXT_KEYS = ("request_id", "user_id", "story_id", "event_type")


def _extra_fields(record: logging.LogRecord) -> dict:
    return {
        key: value
        for key, value in vars(record).items()
        if key not in _RECORD_ATTRS and value is not None
    }


class RequestContextFilter(logging.Filter):
    """Stamp request_id / user_id from ``flask.g`` onto records.

    Values passed explicitly through ``extra`` win.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if has_request_context():
            if getattr(record, "request_id", None) is None:
                record.request_id = getattr(g, "request_id", None)
            if getattr(record, "user_id", None) is None:
                record.user_id = getattr(g, "jwt_user_id", None)
        return True


class JSONFormatter(logging.Formatter):
    """JSON log formatter for production / log aggregation."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        entry.update(_extra_fields(record))
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class ReadableFormatter(logging.Formatter):
    """Single-line formatter for development; colours only on a TTY."""

    LEVEL_COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(self, use_color: bool = False):
        super().__init__()
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        level = f"{record.levelname:<8}"
        if self.use_color:
            level = f"{self.LEVEL_COLORS.get(record.levelno, '')}{level}{self.RESET}"

        context = " ".join(
            f"{key.removesuffix('_id')}={getattr(record, key)}"
            for key in CONTEXT_KEYS
            if getattr(record, key, None)
        )
        line = f"{ts} {level} {record.name}: {record.getMessage()}"
        if context:
            line += f" [{context}]"
        if record.exc_info and record.exc_info[0] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(app):
    """
    Install one stderr handler on the root logger.

    LOG_LEVEL wins; otherwise DEBUG unless the app runs in production mode
    (neither DEBUG nor TESTING), which gets INFO and JSON output.
    """
    is_testing = app.config.get("TESTING", False)
    is_prod = not app.config.get("DEBUG", False) and not is_testing

    level_name = os.getenv("LOG_LEVEL", "INFO" if is_prod else "DEBUG").upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level, level_name = logging.INFO, "INFO"

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.addFilter(RequestContextFilter())
    handler.setFormatter(
        JSONFormatter() if is_prod else ReadableFormatter(use_color=sys.stderr.isatty())
    )

    # Cleared first so repeated create_app() in tests doesn't stack handlers
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for noisy in ("werkzeug", "sqlalchemy.engine", "openpyxl"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
    app.logger.setLevel(level)

    if not is_testing:
        app.logger.info("Logging configured: level=%s format=%s",
                        level_name, "JSON" if is_prod else "readable")
