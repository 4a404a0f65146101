"""
In-memory transaction store.

Used by the test suite and by ``TRANSACTION_STORE=memory`` for throwaway
runs. All state lives in one dict and one counter table guarded by a
single lock, taken once per read or read-modify-write; nothing survives
the process.

A unit of work stages inserts privately and publishes them on commit.
Reserving capacity takes the store's writer lock and holds it until the
unit commits or rolls back, so a second reserver waits for the first to
finish instead of counting its uncommitted slot. The shared counter only
moves on commit.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Optional
from uuid import UUID

from opentelemetry import trace
from opentelemetry.trace import SpanKind

from app.capacity import CAPACITY_COUNTER
from app.errors import DuplicateKeyError, StoreUnavailableError
from app.records import StoredTransaction

logger = logging.getLogger("memory_store")


@contextmanager
def _store_span(operation: str, **attributes):
    tracer = trace.get_tracer(__name__)
    with tracer.start_as_current_span(
        f"db {operation}",
        kind=SpanKind.INTERNAL,
        attributes={"db.system": "memory", "db.operation": operation, **attributes},
    ) as span:
        yield span


class InMemoryUnitOfWork:
    def __init__(self, store: "InMemoryTransactionStore"):
        self._store = store
        self._pending: dict[UUID, StoredTransaction] = {}
        self._reserved: dict[str, int] = {}
        self._holds_writer = False
        self._finished = False

    def __enter__(self) -> "InMemoryUnitOfWork":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if not self._finished:
            self.rollback()

    def get_by_id(self, transaction_id: UUID) -> Optional[StoredTransaction]:
        pending = self._pending.get(transaction_id)
        if pending is not None:
            return pending
        return self._store.get_by_id(transaction_id)

    def increment_if_below(self, counter: str, maximum: int) -> bool:
        with _store_span("UPDATE", **{"capacity.counter": counter}) as span:
            self._acquire_writer()
            current = self._store.counter_value(counter) + self._reserved.get(counter, 0)
            reserved = current < maximum
            if reserved:
                self._reserved[counter] = self._reserved.get(counter, 0) + 1
            span.set_attribute("capacity.reserved", reserved)
        return reserved

    def insert(self, record: StoredTransaction) -> None:
        if record.id in self._pending or self._store.get_by_id(record.id) is not None:
            raise DuplicateKeyError(record.id)
        self._pending[record.id] = record

    def commit(self) -> None:
        with _store_span("COMMIT", **{"db.records_count": len(self._pending)}):
            self._store._publish(list(self._pending.values()), self._reserved)
        self._finish()

    def rollback(self) -> None:
        if self._finished:
            return
        with _store_span("ROLLBACK"):
            self._finish()

    def _acquire_writer(self) -> None:
        if self._holds_writer:
            return
        # waits like a row lock held by another writer
        if not self._store._writer_lock.acquire(timeout=self._store.timeout):
            raise StoreUnavailableError(
                f"Timed out after {self._store.timeout}s waiting for the capacity lock"
            )
        self._holds_writer = True

    def _finish(self) -> None:
        self._finished = True
        self._pending.clear()
        self._reserved.clear()
        if self._holds_writer:
            self._holds_writer = False
            self._store._writer_lock.release()


class InMemoryTransactionStore:
    backend = "memory"

    def __init__(self, timeout: float = 5.0):
        self.timeout = timeout
        self._lock = threading.Lock()
        self._writer_lock = threading.Lock()
        self._items: dict[UUID, StoredTransaction] = {}
        self._counters: dict[str, int] = {CAPACITY_COUNTER: 0}

    def initialize(self, reset: bool = False) -> None:
        with self._lock:
            if reset:
                self._items.clear()
                self._counters.clear()
            self._counters.setdefault(CAPACITY_COUNTER, 0)
        logger.info("In-memory transaction store ready")

    def begin_unit_of_work(self) -> InMemoryUnitOfWork:
        return InMemoryUnitOfWork(self)

    def get_by_id(self, transaction_id: UUID) -> Optional[StoredTransaction]:
        with self._lock:
            return self._items.get(transaction_id)

    def counter_value(self, counter: str) -> int:
        """Committed value of ``counter``."""
        with self._lock:
            return self._counters.get(counter, 0)

    def capacity_used(self) -> int:
        return self.counter_value(CAPACITY_COUNTER)

    def check_connection(self) -> bool:
        return True

    def _publish(self, records: list[StoredTransaction], reserved: dict[str, int]) -> None:
        """Apply a unit's inserts and reservations together, or neither."""
        with self._lock:
            for record in records:
                if record.id in self._items:
                    raise DuplicateKeyError(record.id)
            for record in records:
                self._items[record.id] = record
            for counter, amount in reserved.items():
                self._counters[counter] = self._counters.get(counter, 0) + amount
