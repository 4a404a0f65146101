"""OTLP/HTTP trace export for the intake services."""

import logging
import os
from typing import Optional

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "http://localhost:4318"


def traces_url(endpoint: str) -> str:
    """Append the OTLP traces path to a collector base URL if it is missing."""
    endpoint = endpoint.rstrip("/")
    return endpoint if endpoint.endswith("/v1/traces") else f"{endpoint}/v1/traces"


def init_tracing(service_name: str, version: Optional[str] = None, endpoint: Optional[str] = None) -> TracerProvider:
    """
    Install a global TracerProvider that batches spans to an OTLP collector.

    ``endpoint`` defaults to ``$OTEL_EXPORTER_OTLP_ENDPOINT``, then
    ``http://localhost:4318``.
    """
    url = traces_url(endpoint or os.environ.get("OTEL_EXPORTER_OTLP_ENDPOINT", DEFAULT_ENDPOINT))

    attributes = {"service.name": service_name}
    if version:
        attributes["service.version"] = version
    provider = TracerProvider(resource=Resource.create(attributes))
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=url)))
    trace.set_tracer_provider(provider)

    logger.info("Exporting traces for %s to %s", service_name, url)
    return provider


def shutdown_tracing() -> None:
    """Flush pending spans; a no-op when no SDK provider is installed."""
    provider = trace.get_tracer_provider()
    if not isinstance(provider, TracerProvider):
        return
    try:
        provider.shutdown()
    except Exception as exc:
        logger.warning("Tracer shutdown failed: %s", exc)
    else:
        logger.info("Tracer shutdown complete")
