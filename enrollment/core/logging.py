"""Logging configuration for the enrollment service.

Two output formats share one setup function:

  _ContainerFormatter: single-line, human-readable, for local dev and
    `docker logs`.  WARNING and above carry the source location so a
    rejected purchase or attempt can be traced to its guard clause.

  _JsonFormatter: one JSON object per line, for log aggregation.
    Request context and the ledger ids services pass through ``extra=``
    become top-level keys.

Request context travels in two ContextVars: ``request_id_var`` (set by
RequestContextMiddleware) and ``user_id_var`` (set once the bearer token
is verified).  ContextFilter copies them onto every record.  It sits on
the handler, not the root logger: logger-level filters do not run for
records propagated up from child loggers.

Set LOG_JSON=true in production to switch to JSON output.
"""

from __future__ import annotations

import json
import logging
import sys
from contextvars import ContextVar

request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)
user_id_var: ContextVar[str | None] = ContextVar("user_id", default=None)


class ContextFilter(logging.Filter):
    """Fill request_id/user_id from the current context unless given via extra."""

    def filter(self, record: logging.LogRecord) -> bool:
        if getattr(record, "request_id", None) is None:
            record.request_id = request_id_var.get() or "-"  # type: ignore[attr-defined]
        if getattr(record, "user_id", None) is None:
            user_id = user_id_var.get()
            if user_id is not None:
                record.user_id = user_id  # type: ignore[attr-defined]
        return True


class _ContainerFormatter(logging.Formatter):
    """Single-line formatter for container stdout.

    INFO:     2024-05-01T12:00:00.123+0000 INFO     [req] name  message
    WARNING+: the same, plus [filename:lineno] and any stack trace.
    """

    _BASE_FMT = "%(asctime)s %(levelname)-8s [%(request_id)s] %(name)s  %(message)s"
    _LOC_SUFFIX = "  [%(filename)s:%(lineno)d]"

    def __init__(self) -> None:
        super().__init__(datefmt="%Y-%m-%dT%H:%M:%S%z")

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:
        base = super().formatTime(record, datefmt)
        # Milliseconds go before the +HHMM offset.
        return f"{base[:-5]}.{int(record.msecs):03d}{base[-5:]}"

    def format(self, record: logging.LogRecord) -> str:
        if not hasattr(record, "request_id"):
            record.request_id = "-"  # type: ignore[attr-defined]
        fmt = self._BASE_FMT
        if record.levelno >= logging.WARNING:
            fmt += self._LOC_SUFFIX
        self._style._fmt = fmt
        return super().format(record)


class _JsonFormatter(logging.Formatter):
    """JSON Lines formatter for machine-parseable output."""

    _CONTEXT_FIELDS = (
        "request_id",
        "user_id",
        "method",
        "path",
        "status_code",
        "duration_ms",
        "course_id",
        "purchase_id",
        "quiz_id",
    )

    def __init__(self) -> None:
        super().__init__(datefmt="%Y-%m-%dT%H:%M:%S%z")

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, object] = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(
            (key, value)
            for key in self._CONTEXT_FIELDS
            if (value := getattr(record, key, None)) not in (None, "-")
        )
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


# Library loggers held at WARNING or above whatever LOG_LEVEL says.
_QUIET_LOGGERS = (
    "uvicorn",
    "uvicorn.access",
    "uvicorn.error",
    "httpcore",
    "httpx",
    "sqlalchemy.engine",
    "aiosqlite",
)


def setup_logging(level_name: str, *, json_format: bool = False) -> None:
    """Send every record to stdout in the chosen format.

    Args:
        level_name: debug/info/warning/error (unknown names mean info).
        json_format: JSON lines when True, the container format otherwise.
    """
    level = getattr(logging, level_name.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(ContextFilter())
    handler.setFormatter(_JsonFormatter() if json_format else _ContainerFormatter())

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()
    root.addHandler(handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
