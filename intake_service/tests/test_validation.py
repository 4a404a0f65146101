"""Tests for business validation of incoming transactions."""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import UUID

from app.validation import validate_transaction
from factories import make_record

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


def test_valid_record_has_no_errors():
    record = make_record(transaction_date=NOW - timedelta(days=1))
    assert validate_transaction(record, now=NOW) == {}


def test_negative_amount():
    record = make_record(amount="-1", transaction_date=NOW)
    assert validate_transaction(record, now=NOW) == {"amount": ["Amount must be positive."]}


def test_zero_amount():
    record = make_record(amount="0", transaction_date=NOW)
    assert "amount" in validate_transaction(record, now=NOW)


def test_non_finite_amount():
    record = make_record(transaction_date=NOW)
    record = record.__class__(id=record.id, transaction_date=record.transaction_date, amount=Decimal("NaN"))
    assert validate_transaction(record, now=NOW) == {"amount": ["Amount must be a finite number."]}


def test_future_date_after_normalization():
    # 14:00 at +03:00 is 11:00 UTC, which is not in the future
    past = datetime(2025, 6, 1, 14, 0, tzinfo=timezone(timedelta(hours=3)))
    assert validate_transaction(make_record(transaction_date=past), now=NOW) == {}

    # a naive 12:00:01 is read as UTC and is one second ahead
    future = datetime(2025, 6, 1, 12, 0, 1)
    errors = validate_transaction(make_record(transaction_date=future), now=NOW)
    assert errors == {"transactionDate": ["Transaction date cannot be in the future."]}


def test_reports_every_failing_field():
    record = make_record(
        amount="-5",
        transaction_date=NOW + timedelta(days=1),
        transaction_id=UUID(int=0),
    )
    errors = validate_transaction(record, now=NOW)
    assert set(errors) == {"id", "amount", "transactionDate"}
