"""
Prometheus metric factories with idempotent registration.

The service modules declare their metrics at import time; tests and the
uvicorn reloader may import them more than once, so every factory returns
the already-registered collector instead of failing on a duplicate name.
"""

import os

from prometheus_client import Counter, Histogram, Info, Gauge, REGISTRY, generate_latest, CONTENT_TYPE_LATEST


def _get_or_create(metric_cls, name, documentation, **kwargs):
    """Create a metric or return the existing one if already registered."""
    try:
        return metric_cls(name, documentation, **kwargs)
    except ValueError:
        # Counters register under both ``name`` and ``name_total``
        for candidate in (name, f"{name}_total", name.removesuffix("_total")):
            collector = REGISTRY._names_to_collectors.get(candidate)
            if collector is not None and hasattr(collector, "_name"):
                return collector
        raise


def create_counter(name: str, documentation: str, labelnames: list[str] = None) -> Counter:
    """Create (or retrieve) a Prometheus Counter."""
    return _get_or_create(Counter, name, documentation, labelnames=labelnames or [])


def create_histogram(name: str, documentation: str, buckets: list[float] = None, labelnames: list[str] = None) -> Histogram:
    """Create (or retrieve) a Prometheus Histogram."""
    kwargs = {}
    if buckets:
        kwargs["buckets"] = buckets
    if labelnames:
        kwargs["labelnames"] = labelnames
    return _get_or_create(Histogram, name, documentation, **kwargs)


def create_info(name: str, documentation: str) -> Info:
    """Create (or retrieve) a Prometheus Info metric."""
    return _get_or_create(Info, name, documentation)


def create_gauge(name: str, documentation: str, labelnames: list[str] = None) -> Gauge:
    """Create (or retrieve) a Prometheus Gauge."""
    return _get_or_create(Gauge, name, documentation, labelnames=labelnames or [])


def create_service_info(service_name: str, version: str, environment: str | None = None) -> Info:
    """
    Create and populate a service-metadata Info metric.

    Args:
        service_name: Prometheus metric name (e.g. ``"transaction_intake"``).
        version: Service version string.
        environment: Deployment environment. Falls back to the
            ``ENVIRONMENT`` env-var, then ``"development"``.
    """
    info = create_info(service_name, "Service metadata")
    info.info({
        "version": version,
        "environment": environment or os.environ.get("ENVIRONMENT", "development"),
    })
    return info


def metrics_response():
    """
    Return Prometheus exposition-format bytes and the matching content-type.

    Returns:
        tuple[bytes, str]: ``(body, content_type)`` ready for an HTTP response.
    """
    return generate_latest(), CONTENT_TYPE_LATEST
