"""
Logging setup for Taskflow.

Two formats share one root handler on stderr:
    json      one object per line, with request and sweep context fields
    readable  coloured single line, context appended as key=value pairs

LOG_FORMAT picks one explicitly; otherwise production gets JSON and
development/testing get the readable format. LOG_LEVEL overrides the
level (INFO in production, DEBUG elsewhere).
"""

import json
import logging
import sys
from datetime import datetime, timezone

# Attributes callers attach through ``extra=``; copied into the output when set.
REQUEST_FIELDS = (
    "method", "path", "status", "duration_ms", "remote_addr", "request_id", "user_id",
)
SWEEP_FIELDS = ("node_id", "job_name")
CONTEXT_FIELDS = REQUEST_FIELDS + SWEEP_FIELDS


def _context(record: logging.LogRecord) -> dict:
    return {
        key: getattr(record, key)
        for key in CONTEXT_FIELDS
        if getattr(record, key, None) is not None
    }


class JSONFormatter(logging.Formatter):
    """One JSON document per record, for log shippers."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "where": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        entry.update(_context(record))
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class ReadableFormatter(logging.Formatter):
    """Single-line coloured output for a terminal."""

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelname, "")
        stamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        line = f"{color}{stamp} {record.levelname:<8}{self.RESET} {record.name}: {record.getMessage()}"

        context = _context(record)
        duration = context.pop("duration_ms", None)
        if duration is not None:
            line += f" [{duration:.0f}ms]"
        if context:
            line += " (" + " ".join(f"{k}={v}" for k, v in context.items()) + ")"

        if record.exc_info and record.exc_info[0] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def select_formatter(app) -> logging.Formatter:
    choice = (app.config.get("LOG_FORMAT") or "").lower()
    if choice == "json":
        return JSONFormatter()
    if choice == "readable":
        return ReadableFormatter()
    production = not app.config.get("DEBUG", False) and not app.config.get("TESTING", False)
    return JSONFormatter() if production else ReadableFormatter()


def configure_logging(app):
    """Install the root handler and set levels for the app and its libraries."""
    testing = app.config.get("TESTING", False)
    production = not app.config.get("DEBUG", False) and not testing

    level_name = (app.config.get("LOG_LEVEL") or ("INFO" if production else "DEBUG")).upper()
    level = getattr(logging, level_name, logging.INFO)
    formatter = select_formatter(app)

    # create_app() runs once per test session and again in CLI commands.
    root = logging.getLogger()
    root.handlers.clear()
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)
    handler.setLevel(level)
    root.addHandler(handler)
    root.setLevel(level)

    # Library loggers stay at WARNING.
    for noisy in ("werkzeug", "sqlalchemy.engine", "flask_limiter"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    app.logger.setLevel(level)
    if not testing:
        app.logger.info(
            "Logging configured: level=%s format=%s",
            level_name, type(formatter).__name__,
        )
