"""Tests for the in-memory record store."""

import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone

import pytest

from app.capacity import CAPACITY_COUNTER
from app.engine import InsertEngine
from app.errors import DuplicateKeyError, StoreUnavailableError
from app.memory_store import InMemoryTransactionStore
from app.records import InsertStatus, StoredTransaction
from factories import make_record

INSERTED_AT = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


def _stored():
    return StoredTransaction.from_record(make_record(), INSERTED_AT)


def test_staged_insert_is_private_until_commit(memory_store):
    record = _stored()
    with memory_store.begin_unit_of_work() as uow:
        uow.insert(record)
        assert uow.get_by_id(record.id) == record
        assert memory_store.get_by_id(record.id) is None
        uow.commit()

    assert memory_store.get_by_id(record.id) == record


def test_duplicate_within_one_unit(memory_store):
    record = _stored()
    with memory_store.begin_unit_of_work() as uow:
        uow.insert(record)
        with pytest.raises(DuplicateKeyError):
            uow.insert(record)


def test_second_commit_of_same_id_loses(memory_store):
    record = _stored()
    first = memory_store.begin_unit_of_work()
    second = memory_store.begin_unit_of_work()
    with first, second:
        first.insert(record)
        second.insert(record)

        first.commit()
        with pytest.raises(DuplicateKeyError):
            second.commit()
        second.rollback()

    assert memory_store.get_by_id(record.id) == record


def test_uncommitted_reservation_is_not_counted(memory_store):
    with memory_store.begin_unit_of_work() as uow:
        assert uow.increment_if_below(CAPACITY_COUNTER, 5)
        assert uow.increment_if_below(CAPACITY_COUNTER, 5)
        assert memory_store.capacity_used() == 0
        uow.commit()

    assert memory_store.capacity_used() == 2


def test_second_reserver_waits_for_first_to_finish(memory_store):
    first = memory_store.begin_unit_of_work()
    first.__enter__()
    assert first.increment_if_below(CAPACITY_COUNTER, 1)

    def reserve_and_commit():
        with memory_store.begin_unit_of_work() as uow:
            reserved = uow.increment_if_below(CAPACITY_COUNTER, 1)
            uow.commit()
        return reserved

    with ThreadPoolExecutor(max_workers=1) as pool:
        future = pool.submit(reserve_and_commit)
        time.sleep(0.05)
        first.rollback()
        assert future.result(timeout=5) is True

    assert memory_store.capacity_used() == 1


def test_rolled_back_last_slot_goes_to_waiting_insert():
    store = InMemoryTransactionStore()
    store.initialize()
    holder = store.begin_unit_of_work()
    holder.__enter__()
    assert holder.increment_if_below(CAPACITY_COUNTER, 1)
    record = make_record()

    with ThreadPoolExecutor(max_workers=1) as pool:
        future = pool.submit(InsertEngine(store, capacity=1).create, record)
        time.sleep(0.05)
        holder.rollback()
        outcome = future.result(timeout=5)

    assert outcome.status is InsertStatus.INSERTED
    assert store.capacity_used() == 1
    assert store.get_by_id(record.id) is not None


def test_waiting_reserver_times_out():
    store = InMemoryTransactionStore(timeout=0.05)
    store.initialize()
    with store.begin_unit_of_work() as holder:
        assert holder.increment_if_below(CAPACITY_COUNTER, 10)
        with store.begin_unit_of_work() as waiter:
            with pytest.raises(StoreUnavailableError):
                waiter.increment_if_below(CAPACITY_COUNTER, 10)

    with store.begin_unit_of_work() as uow:
        assert uow.increment_if_below(CAPACITY_COUNTER, 10)
        uow.commit()
    assert store.capacity_used() == 1


def test_reset_clears_everything():
    store = InMemoryTransactionStore()
    store.initialize()
    record = _stored()
    with store.begin_unit_of_work() as uow:
        uow.increment_if_below(CAPACITY_COUNTER, 10)
        uow.insert(record)
        uow.commit()

    store.initialize(reset=True)

    assert store.get_by_id(record.id) is None
    assert store.capacity_used() == 0
    assert store.check_connection() is True
