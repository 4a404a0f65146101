"""
Transaction routes.

  POST /api/v1/Transaction   idempotent, capacity-bounded create
  GET  /api/v1/Transaction   lookup by id
"""

import logging
from datetime import datetime, timezone
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from app.dependencies import get_engine, get_store
from app.engine import InsertEngine
from app.models import (
    IdempotencyConflictProblem,
    Problem,
    Transaction,
    TransactionInsertResponse,
    ValidationProblem,
)
from app.problems import (
    capacity_problem,
    idempotency_conflict_problem,
    not_found_problem,
    validation_problem,
)
from app.records import InsertStatus
from app.store import TransactionStore
from app.validation import validate_transaction

logger = logging.getLogger("transactions")

router = APIRouter(prefix="/api/v1", tags=["Transactions"])


@router.post(
    "/Transaction",
    response_model=TransactionInsertResponse,
    responses={
        400: {"model": ValidationProblem},
        409: {"model": IdempotencyConflictProblem},
    },
)
def create_transaction(body: Transaction, engine: InsertEngine = Depends(get_engine)):
    """
    Store a transaction, or answer a replay of one already stored.

    The response carries the first-ever insertion time for ``id``; a
    replay returns the same value as the original insert.
    """
    # captured before validation so the insertion time is the arrival time
    insert_date_time = datetime.now(timezone.utc)

    record = body.to_record()
    errors = validate_transaction(record, now=insert_date_time)
    if errors:
        logger.info("Rejected transaction %s: %s", record.id, sorted(errors))
        return validation_problem(errors)

    outcome = engine.create(record, insert_date_time)

    if outcome.status is InsertStatus.CAPACITY_EXHAUSTED:
        return capacity_problem(engine.capacity)

    if outcome.status is InsertStatus.IDEMPOTENCY_CONFLICT:
        return idempotency_conflict_problem(outcome)

    return TransactionInsertResponse(
        insert_date_time=outcome.insert_date_time or insert_date_time,
    )


@router.get(
    "/Transaction",
    response_model=Transaction,
    responses={404: {"model": Problem}},
)
def get_transaction(
    id: UUID = Query(description="Transaction id"),
    store: TransactionStore = Depends(get_store),
):
    stored = store.get_by_id(id)
    if stored is None:
        logger.info("Transaction %s not found", id)
        return not_found_problem()
    return Transaction.from_stored(stored)
