"""Logging, tracing and metrics for the indexing-and-query engine."""

from booksearch.observability.context import bind_log_context, current_log_context, log_context
from booksearch.observability.logging import JsonFormatter, configure_logging
from booksearch.observability.metrics import (
    BUILD_COUNT,
    BUILD_LATENCY,
    INDEX_DOC_COUNT,
    SEARCH_COUNT,
    SEARCH_LATENCY,
    SNAPSHOT_PERSIST_COUNT,
    BridgedMetric,
    init_metrics,
    track_latency,
    write_metrics_textfile,
)
from booksearch.observability.tracing import create_span, get_tracer, init_tracing


__all__ = [
    "BUILD_COUNT",
    "BUILD_LATENCY",
    "INDEX_DOC_COUNT",
    "SEARCH_COUNT",
    "SEARCH_LATENCY",
    "SNAPSHOT_PERSIST_COUNT",
    "BridgedMetric",
    "JsonFormatter",
    "bind_log_context",
    "configure_logging",
    "create_span",
    "current_log_context",
    "get_tracer",
    "init_metrics",
    "init_tracing",
    "log_context",
    "track_latency",
    "write_metrics_textfile",
]
