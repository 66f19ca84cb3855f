"""
Structured logging configuration.

- Development: human-readable colored format, workflow context inline
  (``room=3 stage=12 THREE_D start``)
- Production: JSON format (log aggregator compatible)
- LOG_LEVEL sets the root level; PHASE_LOG_LEVEL overrides it for the
  phase workflow loggers (residentone.phases, residentone.services)
- LOG_FORMAT=json|readable forces a formatter regardless of environment
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone

# Record attributes copied into JSON output when present.
_EXTRA_FIELDS = (
    "method",
    "path",
    "status",
    "duration_ms",
    "remote_addr",
    "request_id",
    "room_id",
    "stage_id",
    "phase",
    "action",
)

_WORKFLOW_LOGGERS = ("residentone.phases", "residentone.services", "residentone.integrations")


def _workflow_context(record: logging.LogRecord) -> str:
    """``room=3 stage=12 THREE_D start`` from whichever extras the record carries."""
    parts = []
    room_id = getattr(record, "room_id", None)
    stage_id = getattr(record, "stage_id", None)
    if room_id is not None:
        parts.append(f"room={room_id}")
    if stage_id is not None:
        parts.append(f"stage={stage_id}")
    for key in ("phase", "action"):
        val = getattr(record, key, None)
        if val:
            parts.append(str(val))
    return " ".join(parts)


class JSONFormatter(logging.Formatter):
    """JSON log formatter for production / log aggregation."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }
        if record.exc_info and record.exc_info[0] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        for key in _EXTRA_FIELDS:
            val = getattr(record, key, None)
            if val is not None:
                log_entry[key] = val
        return json.dumps(log_entry, ensure_ascii=False, default=str)


class ReadableFormatter(logging.Formatter):
    """Human-readable colored formatter for development."""

    COLORS = {
        "DEBUG": "\033[36m",      # cyan
        "INFO": "\033[32m",       # green
        "WARNING": "\033[33m",    # yellow
        "ERROR": "\033[31m",      # red
        "CRITICAL": "\033[35m",   # magenta
    }
    DIM = "\033[2m"
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        ts = datetime.now().strftime("%H:%M:%S")
        duration = getattr(record, "duration_ms", None)
        dur_str = f" [{duration:.0f}ms]" if duration is not None else ""
        context = _workflow_context(record)
        ctx_str = f" {self.DIM}({context}){self.RESET}" if context else ""
        msg = record.getMessage()
        base = f"{color}{ts} {record.levelname:<8}{self.RESET} {record.name}: {msg}{dur_str}{ctx_str}"
        if record.exc_info and record.exc_info[0] is not None:
            base += "\n" + self.formatException(record.exc_info)
        return base


def _level(name: str | None, default: int) -> int:
    if not name:
        return default
    return getattr(logging, name.upper(), default)


def configure_logging(app):
    """
    Set up structured logging for the Flask app.

    Development  → ReadableFormatter on stderr
    Production   → JSONFormatter on stderr
    Testing      → readable, WARNING unless LOG_LEVEL says otherwise
    """
    is_testing = app.config.get("TESTING", False)
    is_prod = not app.config.get("DEBUG", False) and not is_testing

    if is_prod:
        default_level = logging.INFO
    elif is_testing:
        default_level = logging.WARNING
    else:
        default_level = logging.DEBUG
    level = _level(os.getenv("LOG_LEVEL"), default_level)
    workflow_level = _level(os.getenv("PHASE_LOG_LEVEL"), level)

    fmt = os.getenv("LOG_FORMAT", "json" if is_prod else "readable").lower()
    formatter = JSONFormatter() if fmt == "json" else ReadableFormatter()

    root = logging.getLogger()
    # Drop handlers from a previous create_app (tests build several apps)
    root.handlers.clear()
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)
    root.addHandler(handler)
    root.setLevel(level)

    for name in _WORKFLOW_LOGGERS:
        logging.getLogger(name).setLevel(workflow_level)

    for noisy in ("urllib3", "werkzeug", "sqlalchemy.engine"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    app.logger.setLevel(level)

    if not is_testing:
        app.logger.info("Logging configured: level=%s workflow=%s format=%s",
                        logging.getLevelName(level), logging.getLevelName(workflow_level), fmt)
