"""OpenTelemetry spans around rebuilds, updates and queries."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from contextlib import contextmanager
import logging

from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.trace import Span, SpanKind, Tracer
from opentelemetry.util.types import AttributeValue

from booksearch import __version__
from booksearch.observability.context import bind_log_context


logger = logging.getLogger(__name__)

INSTRUMENTATION_NAME = "booksearch"

_tracer: Tracer | None = None


def init_tracing(service_name: str = "booksearch", **resource_attributes: str) -> TracerProvider:
    """Install an SDK tracer provider. Exporters are attached by the embedding process."""
    global _tracer
    resource = Resource.create({"service.name": service_name, "service.version": __version__, **resource_attributes})
    provider = TracerProvider(resource=resource)
    trace.set_tracer_provider(provider)
    _tracer = provider.get_tracer(INSTRUMENTATION_NAME, __version__)
    logger.info("Tracing initialized for %s", service_name)
    return provider


def get_tracer() -> Tracer:
    global _tracer
    if _tracer is None:
        _tracer = trace.get_tracer(INSTRUMENTATION_NAME, __version__)
    return _tracer


@contextmanager
def create_span(
    name: str,
    kind: SpanKind = SpanKind.INTERNAL,
    attributes: Mapping[str, AttributeValue] | None = None,
) -> Iterator[Span]:
    """Start a span; exceptions are recorded on it and re-raised.

    The span id is bound into the log context for the duration of the block,
    so log lines emitted inside it can be joined with the trace. The previous
    span id is restored when the block exits.
    """
    with get_tracer().start_as_current_span(
        name,
        kind=kind,
        attributes=dict(attributes or {}),
        record_exception=True,
        set_status_on_exception=True,
    ) as span:
        span_context = span.get_span_context()
        if not span_context.is_valid:
            yield span
            return
        with bind_log_context(span_id=format(span_context.span_id, "016x")):
            yield span
