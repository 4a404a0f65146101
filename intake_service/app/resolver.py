"""
Conflict resolution for identifiers that already exist in the store.

A replay of a known identifier never writes. Outside strict mode it is
always answered with the stored insertion time; in strict mode the
payload must match the stored record exactly or the request is rejected
as an idempotency conflict.
"""

import logging

from app.normalizer import normalize
from app.records import InsertOutcome, InsertStatus, StoredTransaction, TransactionRecord

logger = logging.getLogger("resolver")


def mismatched_fields(existing: StoredTransaction, candidate: TransactionRecord | StoredTransaction) -> tuple[str, ...]:
    """Return the public field names whose values differ."""
    fields = []
    if existing.amount != candidate.amount:
        fields.append("amount")
    if normalize(existing.transaction_date) != normalize(candidate.transaction_date):
        fields.append("transactionDate")
    return tuple(fields)


def is_same(existing: StoredTransaction, candidate: TransactionRecord | StoredTransaction) -> bool:
    """Exact equality on amount and normalized transaction date."""
    return not mismatched_fields(existing, candidate)


def resolve_existing(
    existing: StoredTransaction,
    candidate: TransactionRecord | StoredTransaction,
    strict: bool,
) -> InsertOutcome:
    """Decide the response for a request whose identifier is already stored."""
    if strict:
        diff = mismatched_fields(existing, candidate)
        if diff:
            logger.warning(
                "Idempotency conflict for %s: mismatched %s",
                existing.id,
                ", ".join(diff),
            )
            return InsertOutcome(
                status=InsertStatus.IDEMPOTENCY_CONFLICT,
                insert_date_time=existing.insert_date_time,
                existing=existing,
                mismatched_fields=diff,
            )

    logger.info("Idempotent replay for %s (inserted at %s)", existing.id, existing.insert_date_time.isoformat())
    return InsertOutcome(
        status=InsertStatus.REPLAYED,
        insert_date_time=existing.insert_date_time,
        existing=existing,
    )
