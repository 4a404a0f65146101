from fastapi import APIRouter, Depends, Response

from app.config import MAX_TRANSACTIONS
from app.dependencies import get_store
from app.models import HealthResponse
from app.store import TransactionStore
from intake_common.observability import metrics_response

router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthResponse)
def health(store: TransactionStore = Depends(get_store)):
    store_ok = store.check_connection()
    total = store.capacity_used() if store_ok else 0
    return HealthResponse(
        status="healthy" if store_ok else "unhealthy",
        store_backend=store.backend,
        store_connected=store_ok,
        total_records=total,
        capacity_limit=MAX_TRANSACTIONS,
    )


@router.get("/metrics")
def metrics():
    body, content_type = metrics_response()
    return Response(content=body, media_type=content_type)
