"""Tests for the SQLite record store."""

import sqlite3
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from app.database import SqliteTransactionStore
from app.errors import DuplicateKeyError, StoreUnavailableError
from app.records import StoredTransaction
from factories import make_record

INSERTED_AT = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


def _stored(amount="12.34"):
    return StoredTransaction.from_record(make_record(amount=amount), INSERTED_AT)


def _commit(store, record):
    with store.begin_unit_of_work() as uow:
        uow.insert(record)
        uow.commit()


class TestInitialize:
    def test_initialize_is_idempotent(self, sqlite_store):
        record = _stored()
        _commit(sqlite_store, record)

        sqlite_store.initialize()

        assert sqlite_store.get_by_id(record.id) == record

    def test_reset_drops_records_and_counter(self, sqlite_store):
        record = _stored()
        with sqlite_store.begin_unit_of_work() as uow:
            uow.increment_if_below("transactions", 100)
            uow.insert(record)
            uow.commit()

        sqlite_store.initialize(reset=True)

        assert sqlite_store.get_by_id(record.id) is None
        assert sqlite_store.capacity_used() == 0

    def test_creates_missing_parent_directory(self, tmp_path):
        store = SqliteTransactionStore(tmp_path / "nested" / "dir" / "tx.db")
        store.initialize()
        assert store.check_connection()


class TestUnitOfWork:
    def test_committed_record_round_trips(self, sqlite_store):
        record = _stored(amount="1234567890123456.78")
        _commit(sqlite_store, record)

        stored = sqlite_store.get_by_id(record.id)

        assert stored == record
        assert str(stored.amount) == "1234567890123456.78"
        assert stored.insert_date_time.tzinfo is not None

    def test_uncommitted_insert_is_invisible(self, sqlite_store):
        record = _stored()
        with sqlite_store.begin_unit_of_work() as uow:
            uow.insert(record)
            assert uow.get_by_id(record.id) == record
            assert sqlite_store.get_by_id(record.id) is None
            uow.rollback()

        assert sqlite_store.get_by_id(record.id) is None

    def test_duplicate_insert_raises(self, sqlite_store):
        record = _stored()
        _commit(sqlite_store, record)

        with sqlite_store.begin_unit_of_work() as uow:
            with pytest.raises(DuplicateKeyError) as excinfo:
                uow.insert(record)
            uow.rollback()

        assert excinfo.value.transaction_id == record.id

    def test_exception_rolls_back(self, sqlite_store):
        record = _stored()
        with pytest.raises(ValueError):
            with sqlite_store.begin_unit_of_work() as uow:
                uow.increment_if_below("transactions", 100)
                uow.insert(record)
                raise ValueError("abort")

        assert sqlite_store.get_by_id(record.id) is None
        assert sqlite_store.capacity_used() == 0

    def test_rollback_after_commit_is_a_no_op(self, sqlite_store):
        record = _stored()
        with sqlite_store.begin_unit_of_work() as uow:
            uow.insert(record)
            uow.commit()
            uow.rollback()

        assert sqlite_store.get_by_id(record.id) == record


class TestAvailability:
    def test_check_connection(self, sqlite_store):
        assert sqlite_store.check_connection() is True

    def test_check_connection_false_for_unopenable_path(self, tmp_path):
        assert SqliteTransactionStore(tmp_path / "missing" / "tx.db").check_connection() is False

    def test_locked_database_is_unavailable(self, sqlite_store):
        blocker = sqlite3.connect(str(sqlite_store.path), isolation_level=None)
        blocker.execute("BEGIN IMMEDIATE")
        try:
            impatient = SqliteTransactionStore(sqlite_store.path, timeout=0.05)
            with pytest.raises(StoreUnavailableError):
                with impatient.begin_unit_of_work():
                    pass
        finally:
            blocker.execute("ROLLBACK")
            blocker.close()

    def test_committed_data_survives_a_new_store_instance(self, sqlite_store):
        record = _stored(amount="3.50")
        _commit(sqlite_store, record)

        reopened = SqliteTransactionStore(sqlite_store.path)
        reopened.initialize()

        assert reopened.get_by_id(record.id).amount == Decimal("3.50")


class TestFaultsInsideUnitOfWork:
    """Errors raised by statements inside a unit surface as an unavailable store."""

    def _store_with(self, tmp_path, *statements):
        path = tmp_path / "partial.db"
        conn = sqlite3.connect(str(path))
        for statement in statements:
            conn.execute(statement)
        conn.commit()
        conn.close()
        return SqliteTransactionStore(path, timeout=0.5)

    def test_lookup(self, tmp_path):
        store = self._store_with(tmp_path)
        with store.begin_unit_of_work() as uow:
            with pytest.raises(StoreUnavailableError):
                uow.get_by_id(_stored().id)

    def test_capacity_reservation(self, tmp_path):
        store = self._store_with(
            tmp_path,
            "CREATE TABLE transactions (id TEXT PRIMARY KEY, transaction_date TEXT, "
            "amount TEXT, insert_date_time TEXT)",
        )
        with store.begin_unit_of_work() as uow:
            assert uow.get_by_id(_stored().id) is None
            with pytest.raises(StoreUnavailableError):
                uow.increment_if_below("transactions", 100)

    def test_insert(self, tmp_path):
        store = self._store_with(
            tmp_path,
            "CREATE TABLE transactions (id TEXT PRIMARY KEY, transaction_date TEXT)",
            "CREATE TABLE capacity (id TEXT PRIMARY KEY, count INTEGER NOT NULL)",
            "INSERT INTO capacity (id, count) VALUES ('transactions', 0)",
        )
        with store.begin_unit_of_work() as uow:
            with pytest.raises(StoreUnavailableError):
                uow.insert(_stored())

    def test_capacity_read(self, tmp_path):
        store = self._store_with(tmp_path)
        with pytest.raises(StoreUnavailableError):
            store.capacity_used()

    def test_engine_reports_unavailable_store(self, tmp_path):
        from app.engine import InsertEngine

        store = self._store_with(tmp_path)
        with pytest.raises(StoreUnavailableError):
            InsertEngine(store).create(make_record())
