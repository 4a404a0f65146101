"""
intake_common.observability: shared observability for the intake services.

Submodules
----------
logging      Structured JSON logging with OTel trace-context injection.
metrics      Prometheus metric factories and helpers.
tracing      OpenTelemetry tracing (OTLP exporter).
middleware   Starlette HTTP-metrics middleware.
testing      In-memory span exporter & metric-reset helpers for tests.

Quick start
-----------
::

    from intake_common.observability import init_observability, get_logger

    init_observability("transaction-intake", "1.0.0")
    logger = get_logger("transaction-intake")
"""

import logging as _logging
import os as _os

# ── logging ──────────────────────────────────────────────────────
from .logging import setup_logging, get_logger, level_from_env, JsonTraceFormatter, StoreAlertHandler

# ── metrics ──────────────────────────────────────────────────────
from .metrics import (
    create_counter,
    create_histogram,
    create_info,
    create_gauge,
    create_service_info,
    metrics_response,
)

# ── tracing ──────────────────────────────────────────────────────
from .tracing import init_tracing, shutdown_tracing

# ── middleware ────────────────────────────────────────────────────
from .middleware import MetricsMiddleware

# ── testing ──────────────────────────────────────────────────────
from .testing import (
    setup_test_tracing,
    get_spans_by_name,
    get_spans_with_attribute,
    reset_metrics,
)


# ── bootstrap ────────────────────────────────────────────────────

def init_observability(
    service_name: str,
    version: str,
    *,
    log_level: int | None = None,
    environment: str | None = None,
) -> None:
    """
    One-call bootstrap for logging, tracing, and service-info metrics.

    1. ``setup_logging(log_level)``; the level defaults to ``$LOG_LEVEL``
       or ``INFO``.
    2. ``init_tracing(service_name, version)``, only when
       ``OTEL_EXPORTER_OTLP_ENDPOINT`` is set. A failing exporter is
       logged and the service keeps running without traces.
    3. ``create_service_info(service_name, version, environment)``

    Args:
        service_name: Identifier used in traces and the info metric.
        version: Semantic version of the service.
        log_level: Root log level.
        environment: Deployment env; defaults to ``$ENVIRONMENT`` or
            ``"development"``.
    """
    setup_logging(log_level if log_level is not None else level_from_env(_logging.INFO))
    logger = get_logger(service_name)

    if _os.environ.get("OTEL_EXPORTER_OTLP_ENDPOINT"):
        try:
            init_tracing(service_name, version)
        except Exception as exc:
            logger.warning("Tracing init failed (non-fatal): %s", exc)
    else:
        logger.info("Tracing disabled (OTEL_EXPORTER_OTLP_ENDPOINT not set)")

    create_service_info(
        service_name.replace("-", "_"),
        version,
        environment,
    )

    logger.info("Observability initialised for %s v%s", service_name, version)


__all__ = [
    "init_observability",
    "setup_logging",
    "get_logger",
    "level_from_env",
    "JsonTraceFormatter",
    "StoreAlertHandler",
    "create_counter",
    "create_histogram",
    "create_info",
    "create_gauge",
    "create_service_info",
    "metrics_response",
    "init_tracing",
    "shutdown_tracing",
    "MetricsMiddleware",
    "setup_test_tracing",
    "get_spans_by_name",
    "get_spans_with_attribute",
    "reset_metrics",
]
