"""Context propagation for log correlation across async boundaries."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from uuid import uuid4


# Per-task correlation context; asyncio copies it into every new task
trace_context: ContextVar[dict | None] = ContextVar("trace_context", default=None)


def generate_trace_id() -> str:
    """Generate a 32-char hex trace ID."""
    return uuid4().hex


def generate_span_id() -> str:
    """Generate a 16-char hex span ID."""
    return uuid4().hex[:16]


def get_trace_context() -> dict:
    """Get the current context, starting a fresh trace if there is none."""
    ctx = trace_context.get()
    if ctx is None or not ctx.get("trace_id"):
        ctx = {"trace_id": generate_trace_id(), "span_id": generate_span_id()}
        trace_context.set(ctx)
    return ctx


def set_trace_context(trace_id: str, span_id: str, **extra: object) -> None:
    """Replace the context. ``extra`` carries fields such as ``operation``."""
    trace_context.set({"trace_id": trace_id, "span_id": span_id, **extra})


def update_span_id(span_id: str) -> None:
    """Update span_id while preserving trace_id and extra fields."""
    ctx = get_trace_context()
    trace_context.set({**ctx, "span_id": span_id})


@contextmanager
def bound_operation(operation: str) -> Iterator[None]:
    """Tag log lines emitted inside the block with the running operation."""
    ctx = get_trace_context()
    token = trace_context.set({**ctx, "operation": operation})
    try:
        yield
    finally:
        trace_context.reset(token)

