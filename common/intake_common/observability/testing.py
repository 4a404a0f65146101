"""
Test utilities for the observability stack.

In-memory span exporter setup, span lookup by name or attribute, and a
Prometheus registry reset for tests that create throwaway collectors.
"""

from prometheus_client import REGISTRY
from opentelemetry import trace
from opentelemetry.sdk.trace import TracerProvider, ReadableSpan
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from opentelemetry.sdk.resources import Resource


def setup_test_tracing(service_name: str = "test-service") -> InMemorySpanExporter:
    """
    Install a TracerProvider backed by an InMemorySpanExporter.

    Replaces any provider set by a previous test, then returns the
    exporter so the caller can inspect finished spans.
    """
    resource = Resource.create({"service.name": service_name})
    provider = TracerProvider(resource=resource)
    exporter = InMemorySpanExporter()
    provider.add_span_processor(SimpleSpanProcessor(exporter))
    # bypass the set-once guard on the global provider
    trace._TRACER_PROVIDER = None
    trace._TRACER_PROVIDER_SET_ONCE._done = False
    trace.set_tracer_provider(provider)
    return exporter


def get_spans_by_name(exporter: InMemorySpanExporter, name: str) -> list[ReadableSpan]:
    """Filter exported spans by operation name."""
    return [s for s in exporter.get_finished_spans() if s.name == name]


def get_spans_with_attribute(exporter: InMemorySpanExporter, key: str, value) -> list[ReadableSpan]:
    """Filter exported spans by a single attribute value."""
    return [
        s for s in exporter.get_finished_spans()
        if s.attributes and s.attributes.get(key) == value
    ]


def reset_metrics(prefix: str | None = None) -> None:
    """
    Unregister user-created collectors from the default Prometheus registry.

    Platform collectors (``gc``, ``process``, ``platform``) are kept. When
    ``prefix`` is given only collectors whose name starts with it are
    removed, which leaves the service's own metrics registered.
    """
    seen = set()
    for collector in list(REGISTRY._names_to_collectors.values()):
        name = getattr(collector, "_name", None)
        if name is None:
            continue
        if prefix is not None and not name.startswith(prefix):
            continue
        if id(collector) in seen:
            continue
        seen.add(id(collector))
        try:
            REGISTRY.unregister(collector)
        except KeyError:
            pass
