"""
Structured logging configuration.

- Development: readable coloured lines tagged with request id and company
- Production: one JSON object per record (log aggregator compatible)
- Log level: LOG_LEVEL (env first, then app config)

``RequestContextFilter`` stamps every record emitted while a request is
active with ``request_id``, ``user_id`` and ``company_id``, so service-level
messages ("Invitation 7 accepted ...") can be correlated with the request and
tenant that caused them without passing those values around.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone

from flask import g, has_request_context, request

# Attributes copied into JSON records when present.
_EXTRA_FIELDS = (
    "request_id",
    "user_id",
    "company_id",
    "method",
    "path",
    "status",
    "duration_ms",
    "remote_addr",
)

_NOISY_LOGGERS = ("urllib3", "werkzeug", "sqlalchemy.engine")


class RequestContextFilter(logging.Filter):
    """Attach request id, principal and company of the current request."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not has_request_context():
            return True
        if getattr(record, "request_id", None) is None:
            record.request_id = getattr(g, "request_id", None)
        if getattr(record, "user_id", None) is None:
            record.user_id = getattr(g, "jwt_user_id", None)
        if getattr(record, "company_id", None) is None:
            record.company_id = (request.view_args or {}).get("company_id")
        return True


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "line": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        for key in _EXTRA_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                entry[key] = value
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class ReadableFormatter(logging.Formatter):
    """``12:00:01 INFO     [3f2a9c company=4] testhub.services...: message``"""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        ts = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")

        tags = []
        request_id = getattr(record, "request_id", None)
        if request_id:
            tags.append(str(request_id))
        company_id = getattr(record, "company_id", None)
        if company_id is not None:
            tags.append(f"company={company_id}")
        context = f" [{' '.join(tags)}]" if tags else ""

        duration = getattr(record, "duration_ms", None)
        timing = f" ({duration:.0f}ms)" if duration is not None else ""

        line = (f"{color}{ts} {record.levelname:<8}{self.RESET}{context} "
                f"{record.name}: {record.getMessage()}{timing}")
        if record.exc_info and record.exc_info[0] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def configure_logging(app):
    """
    Install one stderr handler on the root logger.

    Production (neither DEBUG nor TESTING) gets JSON, everything else the
    readable format. Default level: INFO in production, DEBUG otherwise.
    """
    is_testing = app.config.get("TESTING", False)
    is_prod = not app.config.get("DEBUG", False) and not is_testing

    level_name = (os.getenv("LOG_LEVEL") or app.config.get("LOG_LEVEL")
                  or ("INFO" if is_prod else "DEBUG"))
    level = getattr(logging, level_name.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if is_prod else ReadableFormatter())
    handler.addFilter(RequestContextFilter())
    handler.setLevel(level)

    # Cleared first: tests build the app more than once per process.
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for noisy in _NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.WARNING)
    app.logger.setLevel(level)

    if not is_testing:
        app.logger.info("Logging configured: level=%s format=%s",
                        level_name, "JSON" if is_prod else "readable")
