"""
Transactional insert protocol.

``InsertEngine.create`` runs one request against the store:

  1. Look the identifier up inside a fresh unit of work.
  2. Found: commit the (read-only) unit and let the resolver answer it.
  3. Not found: reserve a capacity slot in the same unit of work. A
     refused reservation rolls back and reports exhausted capacity;
     otherwise the record is written and the unit committed.
  4. If the write loses a race to another writer (duplicate key), roll
     back, look the identifier up again outside any unit of work and
     resolve against what is there. A record that is still missing means
     the store is inconsistent and ``FatalStoreError`` is raised. This
     reconciliation runs at most once per request.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Optional

from opentelemetry import trace
from opentelemetry.trace import SpanKind

from app.capacity import try_reserve
from app.config import MAX_TRANSACTIONS
from app.errors import DuplicateKeyError, FatalStoreError, TransactionStoreError
from app.normalizer import normalize
from app.records import InsertOutcome, InsertStatus, StoredTransaction, TransactionRecord
from app.resolver import resolve_existing

logger = logging.getLogger("engine")

# Metrics placeholders, wired by telemetry.init()
outcomes_counter = None
insert_duration_histogram = None
race_recoveries_counter = None
capacity_used_gauge = None


class InsertEngine:
    """Idempotent, capacity-bounded insert of transaction records.

    Args:
        store: A ``TransactionStore`` providing units of work.
        strict_idempotency: Default mode for ``create`` when the caller
            does not choose one.
        capacity: Maximum number of records the store may ever admit.
    """

    def __init__(self, store, strict_idempotency: bool = False, capacity: int = MAX_TRANSACTIONS):
        self.store = store
        self.strict_idempotency = strict_idempotency
        self.capacity = capacity

    def create(
        self,
        record: TransactionRecord,
        insert_date_time: Optional[datetime] = None,
        strict: Optional[bool] = None,
    ) -> InsertOutcome:
        """Insert ``record`` or reconcile it with the stored one.

        ``insert_date_time`` is the instant the request was received; it
        becomes the record's insertion time only if this call inserts it.
        """
        if insert_date_time is None:
            insert_date_time = datetime.now(timezone.utc)
        if strict is None:
            strict = self.strict_idempotency

        candidate = StoredTransaction.from_record(record, normalize(insert_date_time))

        tracer = trace.get_tracer(__name__)
        start = time.monotonic()
        with tracer.start_as_current_span(
            "insert transaction",
            kind=SpanKind.INTERNAL,
            attributes={
                "transaction.id": str(candidate.id),
                "transaction.strict_idempotency": strict,
            },
        ) as span:
            outcome = self._attempt(candidate, strict)
            if outcome is None:
                span.add_event("duplicate key; reconciling")
                outcome = self._reconcile(candidate, strict)
            span.set_attribute("transaction.outcome", outcome.status.value)

        self._record_metrics(outcome, time.monotonic() - start)
        return outcome

    def _attempt(self, candidate: StoredTransaction, strict: bool) -> Optional[InsertOutcome]:
        """Run steps 1 to 3; ``None`` means the insert hit a duplicate key."""
        with self.store.begin_unit_of_work() as uow:
            existing = uow.get_by_id(candidate.id)
            if existing is not None:
                uow.commit()
                return resolve_existing(existing, candidate, strict)

            if not try_reserve(uow, self.capacity):
                uow.rollback()
                logger.warning(
                    "Capacity exhausted (%d records); refused %s",
                    self.capacity,
                    candidate.id,
                )
                return InsertOutcome(status=InsertStatus.CAPACITY_EXHAUSTED)

            try:
                uow.insert(candidate)
                uow.commit()
            except DuplicateKeyError:
                uow.rollback()
                logger.info("Concurrent insert won the race for %s", candidate.id)
                return None

        logger.info(
            "Inserted transaction %s (amount=%s, date=%s)",
            candidate.id,
            candidate.amount,
            candidate.transaction_date.isoformat(),
        )
        return InsertOutcome(
            status=InsertStatus.INSERTED,
            insert_date_time=candidate.insert_date_time,
        )

    def _reconcile(self, candidate: StoredTransaction, strict: bool) -> InsertOutcome:
        if race_recoveries_counter:
            race_recoveries_counter.inc()

        existing = self.store.get_by_id(candidate.id)
        if existing is None:
            logger.critical(
                "Duplicate key on insert but transaction %s is not stored",
                candidate.id,
                extra={
                    "alert": True,
                    "transaction_id": str(candidate.id),
                    "service": "transaction-intake",
                },
            )
            raise FatalStoreError(
                f"Insert of {candidate.id} failed on a duplicate key, "
                "but no stored record was found"
            )
        return resolve_existing(existing, candidate, strict)

    def _record_metrics(self, outcome: InsertOutcome, elapsed: float) -> None:
        if outcomes_counter:
            outcomes_counter.labels(outcome=outcome.status.value).inc()
        if insert_duration_histogram:
            insert_duration_histogram.observe(elapsed)
        if capacity_used_gauge and outcome.status is InsertStatus.INSERTED:
            # the insert is already committed
            try:
                capacity_used_gauge.set(self.store.capacity_used())
            except TransactionStoreError as exc:
                logger.warning("Capacity gauge not refreshed: %s", exc)
