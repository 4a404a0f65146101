from contextlib import asynccontextmanager

from fastapi import FastAPI

from intake_common.observability import init_observability, get_logger, shutdown_tracing

from app.config import load_options, reset_on_start
from app.dependencies import get_store
from app.problems import register_exception_handlers
from app.routes import transactions_router, health_router

SERVICE_NAME = "transaction-intake"
SERVICE_VERSION = "1.0.0"

# Bootstrap logging + tracing + service-info in one call
init_observability(SERVICE_NAME, SERVICE_VERSION)

logger = get_logger(SERVICE_NAME)


@asynccontextmanager
async def lifespan(app: FastAPI):
    options = load_options()
    store = get_store(options)
    store.initialize(reset=reset_on_start())
    logger.info(
        "Transaction store ready (backend=%s, strict_idempotency=%s)",
        store.backend,
        options.strict_idempotency,
    )

    try:
        from app import telemetry
        telemetry.CAPACITY_USED.set(store.capacity_used())
    except Exception as e:
        logger.warning("Capacity gauge not initialised: %s", e)

    yield

    # Flush remaining traces before shutdown
    shutdown_tracing()


app = FastAPI(
    title="Transaction Intake Service",
    version=SERVICE_VERSION,
    lifespan=lifespan,
)

register_exception_handlers(app)

app.include_router(transactions_router)
app.include_router(health_router)

# Initialize telemetry at module level (before requests start)
try:
    from app import telemetry
    telemetry.init(app)
except Exception as e:
    logger.warning(f"Telemetry init skipped: {e}")
