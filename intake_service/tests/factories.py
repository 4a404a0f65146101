from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

from app.records import TransactionRecord


def today_utc() -> datetime:
    now = datetime.now(timezone.utc)
    return datetime(now.year, now.month, now.day, tzinfo=timezone.utc)


def make_record(amount="12.34", transaction_date=None, transaction_id=None) -> TransactionRecord:
    return TransactionRecord(
        id=transaction_id or uuid4(),
        transaction_date=transaction_date or today_utc() - timedelta(days=1),
        amount=Decimal(amount),
    )


def payload(record: TransactionRecord) -> dict:
    """JSON body for POST /api/v1/Transaction."""
    return {
        "id": str(record.id),
        "transactionDate": record.transaction_date.isoformat(),
        "amount": str(record.amount),
    }
