"""
Structured logging configuration.

Production writes one JSON object per line to stdout so log shippers can
index the ``extra`` fields that commands attach (entry_public_id,
company_id, version, error codes). Development gets a readable console
format.

Environment variables:
- LOG_FORMAT: "json" or "console" (default: json unless DEBUG)
- LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (default: INFO, DEBUG when DEBUG)
- LOG_SQL: "true" to echo SQL through django.db.backends (DEBUG only)
- SERVICE_NAME: value of the "service" field in JSON lines
"""
import json
import logging
import os
from datetime import datetime, timezone


# Loggers owned by this project; each module logs via getLogger(__name__).
APP_LOGGERS = ("accounts", "accounting", "events", "projections", "ops")

# Attributes every LogRecord carries; anything else came in through ``extra``.
RESERVED_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {
    "message",
    "asctime",
}


def _formatters(log_format: str) -> dict:
    if log_format == "json":
        return {"json": {"()": "ops.logging_config.JsonFormatter"}}
    return {
        "verbose": {
            "format": "[{asctime}] {levelname} {name} {message}",
            "style": "{",
        },
    }


def _logger(level: str, handler: str = "console") -> dict:
    return {"handlers": [handler], "level": level, "propagate": False}


def get_logging_config(debug: bool = False) -> dict:
    """
    Build Django's LOGGING dict.

    Args:
        debug: settings.DEBUG; picks console output and DEBUG level unless
            LOG_FORMAT / LOG_LEVEL say otherwise
    """
    log_level = os.environ.get("LOG_LEVEL", "DEBUG" if debug else "INFO")
    log_format = os.environ.get("LOG_FORMAT", "console" if debug else "json")
    log_sql = debug and os.environ.get("LOG_SQL", "").lower() in ("1", "true", "yes")

    formatter = "json" if log_format == "json" else "verbose"

    loggers = {
        "": {"handlers": ["console"], "level": log_level},
        "django": _logger(log_level),
        "django.request": _logger(log_level if debug else "ERROR"),
        "django.db.backends": _logger("DEBUG", "console") if log_sql else _logger("INFO", "null"),
    }
    for name in APP_LOGGERS:
        loggers[name] = _logger(log_level)

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": _formatters(log_format),
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": formatter,
                "stream": "ext://sys.stdout",
            },
            "null": {
                "class": "logging.NullHandler",
            },
        },
        "loggers": loggers,
    }


class JsonFormatter(logging.Formatter):
    """
    One JSON object per record.

    Fields: timestamp (UTC, ISO 8601), level, logger, message, service,
    location, exception (if any) and ``extra`` holding everything the
    caller passed via ``extra=``. Values that json cannot encode (Decimal,
    UUID, model instances) are stringified.
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.service = os.environ.get("SERVICE_NAME", "finitax-ledger")

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        entry = {
            "timestamp": created.isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": self.service,
            "location": {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            },
        }

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        extras = {
            key: value
            for key, value in record.__dict__.items()
            if key not in RESERVED_ATTRS
        }
        if extras:
            entry["extra"] = extras

        return json.dumps(entry, default=str)
