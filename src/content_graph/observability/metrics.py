"""Prometheus metrics for the content core, mirrored to OpenTelemetry instruments."""

from __future__ import annotations

from contextlib import contextmanager
import time
from typing import TYPE_CHECKING, Any

from opentelemetry import metrics as otel_metrics
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import MetricReader
from opentelemetry.sdk.resources import Resource
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest


if TYPE_CHECKING:
    from collections.abc import Generator


_meter_holder: dict[str, Any] = {"meter": None, "provider": None}


def init_metrics(
    service_name: str = "content-graph",
    resource_attributes: dict[str, str] | None = None,
    metric_readers: list[MetricReader] | None = None,
) -> MeterProvider:
    """Initialize the OpenTelemetry meter provider once per process."""
    provider = _meter_holder.get("provider")
    if isinstance(provider, MeterProvider):
        return provider

    attributes = {"service.name": service_name}
    if resource_attributes:
        attributes.update(resource_attributes)
    provider = MeterProvider(resource=Resource.create(attributes), metric_readers=metric_readers or [])
    otel_metrics.set_meter_provider(provider)
    _meter_holder["provider"] = provider
    _meter_holder["meter"] = otel_metrics.get_meter(__name__)
    return provider


def _get_meter():
    meter = _meter_holder.get("meter")
    if meter is None:
        init_metrics()
        meter = _meter_holder.get("meter")
    return meter


class _BoundMetric:
    def __init__(self, wrapper: MetricBridge, labels: dict[str, str]) -> None:
        self._wrapper = wrapper
        self._labels = labels

    def inc(self, amount: float = 1.0) -> None:
        self._wrapper.inc(self._labels, amount)

    def observe(self, value: float) -> None:
        self._wrapper.observe(self._labels, value)


class MetricBridge:
    """Record to a Prometheus metric and a lazily created OTel instrument."""

    def __init__(
        self,
        prom_metric: Counter | Histogram,
        *,
        otel_name: str,
        otel_description: str,
        otel_kind: str,
    ) -> None:
        self._prom_metric = prom_metric
        self._otel_name = otel_name
        self._otel_description = otel_description
        self._otel_kind = otel_kind
        self._otel_instrument = None

    def labels(self, **labels: str) -> _BoundMetric:
        return _BoundMetric(self, labels)

    def _ensure_otel_instrument(self):
        if self._otel_instrument is not None:
            return self._otel_instrument
        meter = _get_meter()
        if self._otel_kind == "counter":
            self._otel_instrument = meter.create_counter(self._otel_name, description=self._otel_description)
        elif self._otel_kind == "histogram":
            self._otel_instrument = meter.create_histogram(self._otel_name, description=self._otel_description)
        else:
            raise ValueError(f"Unknown metric kind: {self._otel_kind}")
        return self._otel_instrument

    def inc(self, labels: dict[str, str], amount: float = 1.0) -> None:
        if labels:
            self._prom_metric.labels(**labels).inc(amount)
        else:
            self._prom_metric.inc(amount)
        self._ensure_otel_instrument().add(amount, labels)

    def observe(self, labels: dict[str, str], value: float) -> None:
        if labels:
            self._prom_metric.labels(**labels).observe(value)
        else:
            self._prom_metric.observe(value)
        self._ensure_otel_instrument().record(value, labels)


_OPERATION_COUNT_PROM = Counter(
    "content_operations_total",
    "Core operations by outcome",
    ["operation", "status"],
)

_OPERATION_LATENCY_PROM = Histogram(
    "content_operation_latency_seconds",
    "Core operation latency in seconds",
    ["operation"],
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0),
)

_TRANSACTION_OUTCOMES_PROM = Counter(
    "transaction_outcomes_total",
    "Unit-of-work outcomes",
    ["operation", "outcome"],
)

_FUZZY_FALLBACKS_PROM = Counter(
    "search_fuzzy_fallbacks_total",
    "Searches that engaged the fuzzy stage",
)

_ADMIN_STAT_FAILURES_PROM = Counter(
    "admin_stat_failures_total",
    "Admin dashboard counts that degraded to zero",
    ["metric"],
)

OPERATION_COUNT = MetricBridge(
    _OPERATION_COUNT_PROM,
    otel_name="content_operations_total",
    otel_description="Core operations by outcome",
    otel_kind="counter",
)

OPERATION_LATENCY = MetricBridge(
    _OPERATION_LATENCY_PROM,
    otel_name="content_operation_latency_seconds",
    otel_description="Core operation latency in seconds",
    otel_kind="histogram",
)

TRANSACTION_OUTCOMES = MetricBridge(
    _TRANSACTION_OUTCOMES_PROM,
    otel_name="transaction_outcomes_total",
    otel_description="Unit-of-work outcomes",
    otel_kind="counter",
)

FUZZY_FALLBACKS = MetricBridge(
    _FUZZY_FALLBACKS_PROM,
    otel_name="search_fuzzy_fallbacks_total",
    otel_description="Searches that engaged the fuzzy stage",
    otel_kind="counter",
)

ADMIN_STAT_FAILURES = MetricBridge(
    _ADMIN_STAT_FAILURES_PROM,
    otel_name="admin_stat_failures_total",
    otel_description="Admin dashboard counts that degraded to zero",
    otel_kind="counter",
)


@contextmanager
def track_latency(histogram: MetricBridge, **labels: str) -> Generator[None, None, None]:
    """Context manager to track operation latency."""
    start = time.perf_counter()
    try:
        yield
    finally:
        histogram.labels(**labels).observe(time.perf_counter() - start)


def record_outcome(operation: str, ok: bool) -> None:
    OPERATION_COUNT.labels(operation=operation, status="ok" if ok else "error").inc()


def get_metrics() -> bytes:
    """Generate Prometheus metrics output."""
    return generate_latest()


def get_metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
