"""Business validation of incoming transactions.

Runs before the store is touched. Every failing field is reported, keyed
by its public (camelCase) name.
"""

from datetime import datetime, timezone
from typing import Optional

from app.normalizer import normalize
from app.records import TransactionRecord


def validate_transaction(record: TransactionRecord, now: Optional[datetime] = None) -> dict[str, list[str]]:
    """Return ``{field: [messages]}``; an empty dict means the record is valid."""
    if now is None:
        now = datetime.now(timezone.utc)

    errors: dict[str, list[str]] = {}

    if not record.amount.is_finite():
        errors["amount"] = ["Amount must be a finite number."]
    elif record.amount <= 0:
        errors["amount"] = ["Amount must be positive."]

    if normalize(record.transaction_date) > normalize(now):
        errors["transactionDate"] = ["Transaction date cannot be in the future."]

    if record.id.int == 0:
        errors["id"] = ["Id must be a non-empty GUID."]

    return errors
