"""Span, latency and outcome bookkeeping shared by every core operation."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
import functools
from typing import ParamSpec, TypeVar

from content_graph.errors import DbResult
from content_graph.observability.context import bound_operation
from content_graph.observability.metrics import OPERATION_LATENCY, record_outcome, track_latency
from content_graph.observability.tracing import create_span


P = ParamSpec("P")
R = TypeVar("R")


def instrumented(operation: str) -> Callable[[Callable[P, Awaitable[R]]], Callable[P, Awaitable[R]]]:
    """Wrap an async operation in a span and record its latency and outcome.

    A returned ``DbResult`` with an error counts as a failure; any other
    return value counts as success.
    """

    def decorator(fn: Callable[P, Awaitable[R]]) -> Callable[P, Awaitable[R]]:
        @functools.wraps(fn)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            with (
                bound_operation(operation),
                create_span(f"content.{operation}", attributes={"content.operation": operation}) as span,
                track_latency(OPERATION_LATENCY, operation=operation),
            ):
                result = await fn(*args, **kwargs)
                ok = not isinstance(result, DbResult) or result.ok
                span.set_attribute("content.ok", ok)
            record_outcome(operation, ok)
            return result

        return wrapper

    return decorator
