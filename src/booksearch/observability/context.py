"""Log correlation fields carried across threads and tasks.

``asyncio.to_thread`` copies the current context into the worker thread, so
fields bound by the service layer are visible to the builder's log records.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from uuid import uuid4


log_context: ContextVar[dict[str, object] | None] = ContextVar("booksearch_log_context", default=None)


def new_trace_id() -> str:
    return uuid4().hex


def new_span_id() -> str:
    return uuid4().hex[:16]


def current_log_context() -> dict[str, object]:
    """Return the bound fields, starting a fresh trace when none is bound."""
    ctx = log_context.get()
    if not ctx or not ctx.get("trace_id"):
        ctx = {**(ctx or {}), "trace_id": new_trace_id(), "span_id": new_span_id()}
        log_context.set(ctx)
    return ctx


@contextmanager
def bind_log_context(**fields: object) -> Iterator[dict[str, object]]:
    """Add ``fields`` (e.g. ``collection``, ``operation``, ``book_id``) for the duration of the block."""
    token = log_context.set({**current_log_context(), **fields})
    try:
        yield log_context.get() or {}
    finally:
        log_context.reset(token)