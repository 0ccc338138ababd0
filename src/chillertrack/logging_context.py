"""Context stamped onto depot log lines.

A CLI invocation opens a command context (``run_id``, ``command``, ``db_path``);
services nest operation contexts inside it (``operation``, ``chiller``,
``entry_id``). ``JsonFormatter`` merges the active fields into every record.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from enum import Enum
from types import MappingProxyType
from uuid import uuid4

CONTEXT_FIELDS = ("run_id", "command", "db_path", "operation", "chiller", "entry_id")

_EMPTY: Mapping[str, str] = MappingProxyType({})
_context: ContextVar[Mapping[str, str]] = ContextVar("chillertrack_log_context", default=_EMPTY)


def _render(value: object) -> str:
    # ChillerSlot / Species log as their stored value, not the member name.
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)


def new_run_id() -> str:
    return uuid4().hex[:12]


def get_logging_context() -> dict[str, str]:
    return dict(_context.get())


@contextmanager
def with_logging_context(**fields: object) -> Iterator[None]:
    """Layer ``fields`` over the current context for the duration of the block.

    Unknown field names and ``None`` values are ignored, so callers can pass
    optional identifiers straight through.
    """

    merged = dict(_context.get())
    for key, value in fields.items():
        if key in CONTEXT_FIELDS and value is not None:
            merged[key] = _render(value)
    token = _context.set(MappingProxyType(merged))
    try:
        yield
    finally:
        _context.reset(token)


@contextmanager
def with_command_context(
    command: str, *, db_path: str | None = None, run_id: str | None = None
) -> Iterator[None]:
    with with_logging_context(run_id=run_id or new_run_id(), command=command, db_path=db_path):
        yield


@contextmanager
def with_operation_context(operation: str, **fields: object) -> Iterator[None]:
    with with_logging_context(operation=operation, **fields):
        yield
