"""Domain records shared by the insert engine and the stores."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID

from app.normalizer import normalize


@dataclass(frozen=True)
class TransactionRecord:
    """A candidate transaction as submitted by the caller."""

    id: UUID
    transaction_date: datetime
    amount: Decimal


@dataclass(frozen=True)
class StoredTransaction:
    """A transaction as persisted by the store.

    ``transaction_date`` and ``insert_date_time`` are aware UTC instants.
    ``insert_date_time`` is written once, by the first successful insert.
    """

    id: UUID
    transaction_date: datetime
    amount: Decimal
    insert_date_time: datetime

    @classmethod
    def from_record(cls, record: TransactionRecord, insert_date_time: datetime) -> "StoredTransaction":
        return cls(
            id=record.id,
            transaction_date=normalize(record.transaction_date),
            amount=record.amount,
            insert_date_time=insert_date_time,
        )


class InsertStatus(str, Enum):
    INSERTED = "inserted"
    REPLAYED = "replayed"
    CAPACITY_EXHAUSTED = "capacity_exhausted"
    IDEMPOTENCY_CONFLICT = "idempotency_conflict"


@dataclass(frozen=True)
class InsertOutcome:
    """Result of one run of the insert protocol.

    ``insert_date_time`` is the authoritative insertion time for the
    identifier (``None`` when capacity was exhausted). ``existing`` is the
    stored record the request was reconciled against, if any, and
    ``mismatched_fields`` lists what differed under strict idempotency.
    """

    status: InsertStatus
    insert_date_time: Optional[datetime] = None
    existing: Optional[StoredTransaction] = None
    mismatched_fields: tuple[str, ...] = ()

    @property
    def succeeded(self) -> bool:
        return self.status in (InsertStatus.INSERTED, InsertStatus.REPLAYED)
