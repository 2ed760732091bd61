"""Observability module for OpenTelemetry-aligned tracing, metrics, and logging."""

from content_graph.observability.context import bound_operation, get_trace_context, set_trace_context, trace_context
from content_graph.observability.logging import JsonFormatter, configure_logging
from content_graph.observability.metrics import (
    ADMIN_STAT_FAILURES,
    FUZZY_FALLBACKS,
    OPERATION_COUNT,
    OPERATION_LATENCY,
    TRANSACTION_OUTCOMES,
    get_metrics,
    get_metrics_content_type,
    init_metrics,
    record_outcome,
    track_latency,
)
from content_graph.observability.tracing import create_span, get_tracer, init_tracing


__all__ = [
    "ADMIN_STAT_FAILURES",
    "FUZZY_FALLBACKS",
    "OPERATION_COUNT",
    "OPERATION_LATENCY",
    "TRANSACTION_OUTCOMES",
    "JsonFormatter",
    "bound_operation",
    "configure_logging",
    "create_span",
    "get_metrics",
    "get_metrics_content_type",
    "get_trace_context",
    "get_tracer",
    "init_metrics",
    "init_tracing",
    "record_outcome",
    "set_trace_context",
    "trace_context",
    "track_latency",
]
