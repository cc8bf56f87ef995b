"""Structured logging for the engine.

One JSON object per line, serialized with orjson. Each record carries the
bound log context (trace and span ids, collection, operation, book id) so
the lines of one rebuild or update can be grouped.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime, timezone
import logging
from pathlib import Path
import sys
from typing import IO, Any

import orjson

from booksearch.observability.context import current_log_context


_RESERVED = frozenset(logging.LogRecord("", 0, "", 0, "", (), None).__dict__) | {"message", "asctime", "taskName"}

_CONTEXT_FIELDS = ("trace_id", "span_id", "collection", "operation", "book_id")

# Third-party loggers that are noisy at INFO.
_QUIET_LOGGERS = {"opentelemetry": "WARNING"}

TEXT_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def _default(value: Any) -> Any:
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=str)
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, BaseException):
        return f"{type(value).__name__}: {value}"
    return repr(value)


class JsonFormatter(logging.Formatter):
    """Render log records as single-line JSON with context fields."""

    MAX_MESSAGE_LEN = 2000

    def format(self, record: logging.LogRecord) -> str:
        message = record.getMessage()
        if len(message) > self.MAX_MESSAGE_LEN:
            message = message[: self.MAX_MESSAGE_LEN] + "..."

        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": message,
        }
        ctx = current_log_context()
        for name in _CONTEXT_FIELDS:
            if ctx.get(name) is not None:
                entry[name] = ctx[name]

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        # Fields passed through ``extra=`` win over bound context.
        for key, value in record.__dict__.items():
            if key not in _RESERVED and not key.startswith("_"):
                entry[key] = value

        return orjson.dumps(entry, default=_default).decode("utf-8")


def configure_logging(
    level: str = "INFO",
    json_output: bool = True,
    *,
    logger_levels: Mapping[str, str] | None = None,
    stream: IO[str] | None = None,
) -> logging.Handler:
    """Route all records to one stderr handler and return it.

    Args:
        level: Root log level name, case-insensitive.
        json_output: Use ``JsonFormatter`` when True, a plain text line otherwise.
        logger_levels: Extra per-logger level overrides.
        stream: Destination stream; defaults to ``sys.stderr``.
    """
    root = logging.getLogger()
    root.setLevel(logging.getLevelNamesMapping().get(level.upper(), logging.INFO))
    for existing in list(root.handlers):
        root.removeHandler(existing)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(JsonFormatter() if json_output else logging.Formatter(TEXT_FORMAT))
    root.addHandler(handler)

    for name, name_level in {**_QUIET_LOGGERS, **(logger_levels or {})}.items():
        logging.getLogger(name).setLevel(name_level.upper())
    return handler
