"""
SQLite-backed transaction store.

Each unit of work owns one connection and runs inside ``BEGIN IMMEDIATE``,
which takes the database write lock up front: concurrent writers queue on
the busy timeout instead of both reading "not found" and racing to insert.
The primary key on ``transactions.id`` is still the final arbiter, and a
collision surfaces as ``DuplicateKeyError``.

Amounts are stored as canonical decimal text and timestamps as ISO-8601
UTC strings, so values read back compare equal to what was written.
"""

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Optional
from uuid import UUID

from opentelemetry import trace
from opentelemetry.trace import SpanKind

from app.capacity import CAPACITY_COUNTER
from app.errors import DuplicateKeyError, StoreUnavailableError, TransactionStoreError
from app.normalizer import normalize
from app.records import StoredTransaction

logger = logging.getLogger("database")

SCHEMA = """
CREATE TABLE IF NOT EXISTS transactions (
    id TEXT PRIMARY KEY,
    transaction_date TEXT NOT NULL,
    amount TEXT NOT NULL,
    insert_date_time TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS capacity (
    id TEXT PRIMARY KEY,
    count INTEGER NOT NULL CHECK (count >= 0)
);
"""

_SELECT_BY_ID = """
SELECT id, transaction_date, amount, insert_date_time
FROM transactions
WHERE id = ?
"""


@contextmanager
def _db_span(operation: str, **attributes):
    tracer = trace.get_tracer(__name__)
    with tracer.start_as_current_span(
        f"db {operation}",
        kind=SpanKind.INTERNAL,
        attributes={
            "db.system": "sqlite",
            "db.operation": operation,
            **attributes,
        },
    ) as span:
        yield span


@contextmanager
def _unavailable_on_error(action: str):
    try:
        yield
    except sqlite3.OperationalError as exc:
        raise StoreUnavailableError(f"{action} failed: {exc}") from exc


def _row_to_stored(row: sqlite3.Row) -> StoredTransaction:
    return StoredTransaction(
        id=UUID(row["id"]),
        transaction_date=datetime.fromisoformat(row["transaction_date"]),
        amount=Decimal(row["amount"]),
        insert_date_time=datetime.fromisoformat(row["insert_date_time"]),
    )


def _is_unique_violation(exc: sqlite3.IntegrityError) -> bool:
    message = str(exc)
    return "UNIQUE constraint failed" in message or "PRIMARY KEY" in message


class SqliteUnitOfWork:
    """One ``BEGIN IMMEDIATE`` transaction on a dedicated connection."""

    def __init__(self, store: "SqliteTransactionStore"):
        self._store = store
        self._conn: Optional[sqlite3.Connection] = None
        self._finished = False
        self._inserted_id: Optional[UUID] = None

    def __enter__(self) -> "SqliteUnitOfWork":
        self._conn = self._store._connect()
        try:
            with _db_span("BEGIN"):
                self._conn.execute("BEGIN IMMEDIATE")
        except sqlite3.DatabaseError as exc:
            self._conn.close()
            raise StoreUnavailableError(f"Could not start a unit of work: {exc}") from exc
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            if not self._finished:
                self.rollback()
        finally:
            self._conn.close()

    def get_by_id(self, transaction_id: UUID) -> Optional[StoredTransaction]:
        with _db_span("SELECT", **{"transaction.id": str(transaction_id)}) as span:
            with _unavailable_on_error("Lookup"):
                row = self._conn.execute(_SELECT_BY_ID, (str(transaction_id),)).fetchone()
            span.set_attribute("db.found", row is not None)
        return _row_to_stored(row) if row is not None else None

    def increment_if_below(self, counter: str, maximum: int) -> bool:
        with _db_span("UPDATE", **{"capacity.counter": counter, "capacity.maximum": maximum}) as span:
            with _unavailable_on_error("Capacity reservation"):
                cursor = self._conn.execute(
                    "UPDATE capacity SET count = count + 1 WHERE id = ? AND count < ?",
                    (counter, maximum),
                )
            reserved = cursor.rowcount > 0
            span.set_attribute("capacity.reserved", reserved)
        return reserved

    def insert(self, record: StoredTransaction) -> None:
        with _db_span("INSERT", **{"transaction.id": str(record.id)}):
            try:
                self._conn.execute(
                    "INSERT INTO transactions (id, transaction_date, amount, insert_date_time) "
                    "VALUES (?, ?, ?, ?)",
                    (
                        str(record.id),
                        normalize(record.transaction_date).isoformat(),
                        str(record.amount),
                        normalize(record.insert_date_time).isoformat(),
                    ),
                )
            except sqlite3.IntegrityError as exc:
                if _is_unique_violation(exc):
                    raise DuplicateKeyError(record.id) from exc
                raise
            except sqlite3.OperationalError as exc:
                raise StoreUnavailableError(f"Insert failed: {exc}") from exc
        self._inserted_id = record.id

    def commit(self) -> None:
        with _db_span("COMMIT"):
            try:
                self._conn.execute("COMMIT")
            except sqlite3.IntegrityError as exc:
                if _is_unique_violation(exc):
                    raise DuplicateKeyError(self._inserted_id) from exc
                raise
            except sqlite3.OperationalError as exc:
                raise StoreUnavailableError(f"Commit failed: {exc}") from exc
        self._finished = True

    def rollback(self) -> None:
        if self._finished:
            return
        self._finished = True
        with _db_span("ROLLBACK"):
            if self._conn.in_transaction:
                self._conn.execute("ROLLBACK")


class SqliteTransactionStore:
    backend = "sqlite"

    def __init__(self, path: Path, timeout: float = 5.0):
        self.path = Path(path)
        self.timeout = timeout

    def _connect(self) -> sqlite3.Connection:
        try:
            # isolation_level=None: transactions are opened explicitly
            conn = sqlite3.connect(
                str(self.path),
                timeout=self.timeout,
                isolation_level=None,
                check_same_thread=False,
            )
        except sqlite3.Error as exc:
            raise StoreUnavailableError(f"Cannot open {self.path}: {exc}") from exc
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def get_connection(self):
        conn = self._connect()
        try:
            yield conn
        finally:
            conn.close()

    def initialize(self, reset: bool = False) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.get_connection() as conn:
            if reset:
                logger.warning("Resetting transaction store at %s", self.path)
                conn.execute("DROP TABLE IF EXISTS transactions")
                conn.execute("DROP TABLE IF EXISTS capacity")
            conn.execute("PRAGMA journal_mode=WAL")
            conn.executescript(SCHEMA)
            conn.execute(
                "INSERT OR IGNORE INTO capacity (id, count) VALUES (?, 0)",
                (CAPACITY_COUNTER,),
            )
        logger.info("Transaction store initialized at %s", self.path)

    def begin_unit_of_work(self) -> SqliteUnitOfWork:
        return SqliteUnitOfWork(self)

    def get_by_id(self, transaction_id: UUID) -> Optional[StoredTransaction]:
        with _db_span("SELECT", **{"transaction.id": str(transaction_id)}) as span:
            with self.get_connection() as conn:
                with _unavailable_on_error("Lookup"):
                    row = conn.execute(_SELECT_BY_ID, (str(transaction_id),)).fetchone()
            span.set_attribute("db.found", row is not None)
        return _row_to_stored(row) if row is not None else None

    def capacity_used(self) -> int:
        with self.get_connection() as conn, _unavailable_on_error("Capacity read"):
            row = conn.execute(
                "SELECT count FROM capacity WHERE id = ?", (CAPACITY_COUNTER,)
            ).fetchone()
        return row["count"] if row is not None else 0

    def check_connection(self) -> bool:
        try:
            with self.get_connection() as conn:
                conn.execute("SELECT 1")
            return True
        except (sqlite3.Error, TransactionStoreError):
            return False
