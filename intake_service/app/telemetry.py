"""
Service-specific telemetry for transaction-intake.

Domain metrics and FastAPI instrumentation that sit on top of the
shared ``intake_common.observability`` module.
"""

import logging

from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

from intake_common.observability import (
    create_counter,
    create_gauge,
    create_histogram,
    MetricsMiddleware,
)

logger = logging.getLogger("telemetry")

# ── Metrics (Prometheus) ──────────────────────────────────────────

HTTP_REQUESTS = create_counter(
    "http_requests_total",
    "Total HTTP requests by method and path",
    ["method", "path", "status"],
)

INSERT_OUTCOMES = create_counter(
    "transaction_insert_outcomes_total",
    "Insert protocol results by outcome",
    ["outcome"],
)

INSERT_DURATION = create_histogram(
    "transaction_insert_duration_seconds",
    "Time spent running the insert protocol against the store",
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0],
)

RACE_RECOVERIES = create_counter(
    "transaction_race_recoveries_total",
    "Inserts that lost a duplicate-key race and were reconciled",
)

CAPACITY_USED = create_gauge(
    "transaction_capacity_used",
    "Records admitted so far out of the fixed store capacity",
)


# ── Initialization ───────────────────────────────────────────────

def init(app):
    """Wire service-specific telemetry into the FastAPI app.

    * Adds the HTTP-metrics middleware.
    * Wires insert-engine metrics.
    * Instruments FastAPI with OpenTelemetry auto-instrumentation.
    """
    app.add_middleware(MetricsMiddleware, counter=HTTP_REQUESTS, ignored_paths={"/metrics"})

    from app import engine
    engine.outcomes_counter = INSERT_OUTCOMES
    engine.insert_duration_histogram = INSERT_DURATION
    engine.race_recoveries_counter = RACE_RECOVERIES
    engine.capacity_used_gauge = CAPACITY_USED

    try:
        FastAPIInstrumentor.instrument_app(app)
        logger.info("FastAPI instrumentation enabled")
    except Exception as e:
        logger.warning("FastAPI instrumentation failed: %s", e)

    logger.info("Service telemetry initialised")
