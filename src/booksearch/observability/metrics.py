"""Prometheus metrics mirrored into OpenTelemetry instruments.

Every sample is recorded twice: in the Prometheus client registry, which a
batch run can dump for a node_exporter textfile collector with
``write_metrics_textfile``, and in an OTel instrument created on first use
against the current meter provider.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path
import threading
import time
from typing import Any, Literal

from opentelemetry import metrics as otel_metrics
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import MetricReader
from opentelemetry.sdk.resources import Resource
from prometheus_client import REGISTRY, Counter, Gauge, Histogram, write_to_textfile

from booksearch import __version__


MetricKind = Literal["counter", "histogram", "gauge"]

_provider_lock = threading.Lock()
_provider: MeterProvider | None = None


def init_metrics(
    service_name: str = "booksearch",
    metric_readers: Sequence[MetricReader] = (),
) -> MeterProvider:
    """Install the SDK meter provider once; later calls return the same provider."""
    global _provider
    with _provider_lock:
        if _provider is None:
            resource = Resource.create({"service.name": service_name, "service.version": __version__})
            _provider = MeterProvider(resource=resource, metric_readers=list(metric_readers))
            otel_metrics.set_meter_provider(_provider)
        return _provider


class _Labelled:
    __slots__ = ("_labels", "_metric")

    def __init__(self, metric: BridgedMetric, labels: dict[str, str]) -> None:
        self._metric = metric
        self._labels = labels

    def inc(self, amount: float = 1.0) -> None:
        self._metric.prometheus.labels(**self._labels).inc(amount)
        self._metric.instrument().add(amount, self._labels)

    def observe(self, value: float) -> None:
        self._metric.prometheus.labels(**self._labels).observe(value)
        self._metric.instrument().record(value, self._labels)

    def set(self, value: float) -> None:
        # Up-down counter fed with deltas.
        self._metric.prometheus.labels(**self._labels).set(value)
        delta = self._metric.swap_last(self._labels, value)
        if delta:
            self._metric.instrument().add(delta, self._labels)


class BridgedMetric:
    """A Prometheus metric plus its lazily created OTel twin."""

    def __init__(self, kind: MetricKind, name: str, documentation: str, labelnames: Sequence[str], **kwargs: Any):
        self.kind = kind
        self.name = name
        self.documentation = documentation
        factory = {"counter": Counter, "histogram": Histogram, "gauge": Gauge}[kind]
        self.prometheus = factory(name, documentation, list(labelnames), **kwargs)
        self._instrument: Any = None
        self._last: dict[tuple[tuple[str, str], ...], float] = {}
        self._lock = threading.Lock()

    def labels(self, **labels: str) -> _Labelled:
        return _Labelled(self, labels)

    def instrument(self) -> Any:
        if self._instrument is None:
            meter = otel_metrics.get_meter("booksearch", __version__)
            if self.kind == "counter":
                self._instrument = meter.create_counter(self.name, description=self.documentation)
            elif self.kind == "histogram":
                self._instrument = meter.create_histogram(self.name, unit="s", description=self.documentation)
            else:
                self._instrument = meter.create_up_down_counter(self.name, description=self.documentation)
        return self._instrument

    def swap_last(self, labels: dict[str, str], value: float) -> float:
        key = tuple(sorted(labels.items()))
        with self._lock:
            previous = self._last.get(key, 0.0)
            self._last[key] = value
        return value - previous


BUILD_COUNT = BridgedMetric(
    "counter",
    "booksearch_builds_total",
    "Index write operations by outcome",
    ("collection", "operation", "status"),
)
BUILD_LATENCY = BridgedMetric(
    "histogram",
    "booksearch_build_latency_seconds",
    "Duration of index rebuilds and updates",
    ("collection", "operation"),
    buckets=(0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 15.0, 60.0, 300.0),
)
SEARCH_COUNT = BridgedMetric(
    "counter",
    "booksearch_searches_total",
    "Search requests by mode (terms or browse)",
    ("collection", "mode"),
)
SEARCH_LATENCY = BridgedMetric(
    "histogram",
    "booksearch_search_latency_seconds",
    "Search query latency",
    ("collection",),
    buckets=(0.0005, 0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5),
)
INDEX_DOC_COUNT = BridgedMetric(
    "gauge",
    "booksearch_index_document_count",
    "Documents in the published index snapshot",
    ("collection",),
)
SNAPSHOT_PERSIST_COUNT = BridgedMetric(
    "counter",
    "booksearch_snapshot_writes_total",
    "Background snapshot persistence attempts by outcome",
    ("collection", "status"),
)


@contextmanager
def track_latency(metric: BridgedMetric, **labels: str) -> Iterator[None]:
    """Observe the wall time of the block on ``metric``."""
    started = time.perf_counter()
    try:
        yield
    finally:
        metric.labels(**labels).observe(time.perf_counter() - started)


def write_metrics_textfile(path: Path) -> None:
    """Atomically write the default registry in Prometheus text format."""
    path.parent.mkdir(parents=True, exist_ok=True)
    write_to_textfile(str(path), REGISTRY)
