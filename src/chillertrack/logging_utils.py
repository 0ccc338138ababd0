from __future__ import annotations

import json
import logging
import os
import sys
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from typing import IO, Any

from chillertrack.logging_context import CONTEXT_FIELDS, get_logging_context


def _json_default(value: object) -> object:
    # Counts and kilograms stay exact; float() would drift in the log.
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return str(value)


class JsonFormatter(logging.Formatter):
    """One JSON object per line: record basics, ``extra={"extra": {...}}`` fields, then context."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        extras = getattr(record, "extra", None)
        if isinstance(extras, dict):
            payload.update(extras)

        # Explicit extras win over the ambient context.
        context = get_logging_context()
        for field in CONTEXT_FIELDS:
            if field in context:
                payload.setdefault(field, context[field])

        if record.exc_info:
            exc_type, exc_value, _ = record.exc_info
            payload["error_type"] = exc_type.__name__ if exc_type else "Exception"
            payload["error_message"] = str(exc_value) if exc_value is not None else ""
            payload["traceback"] = self.formatException(record.exc_info)
        elif record.exc_text:
            payload["traceback"] = record.exc_text

        return json.dumps(payload, default=_json_default)


def _resolve_log_level(level: str | int | None) -> int:
    if isinstance(level, int):
        return level

    candidate = level if level is not None else os.getenv("LOG_LEVEL", "INFO")
    resolved = logging.getLevelName(str(candidate).strip().upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def setup_logging(level: str | int | None = None, *, stream: IO[str] | None = None) -> None:
    # stdout carries the CLI's JSON results, so logs default to stderr.
    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(JsonFormatter())
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(_resolve_log_level(level))
