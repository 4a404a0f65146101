from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.records import StoredTransaction, TransactionRecord


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Transaction(CamelModel):
    """Public transaction shape, used for both create and lookup."""

    id: UUID
    transaction_date: datetime = Field(
        description="Point in time of the transaction. Values without an offset are read as UTC."
    )
    amount: Decimal = Field(max_digits=18, decimal_places=2)

    def to_record(self) -> TransactionRecord:
        return TransactionRecord(
            id=self.id,
            transaction_date=self.transaction_date,
            amount=self.amount,
        )

    @classmethod
    def from_stored(cls, stored: StoredTransaction) -> "Transaction":
        return cls(
            id=stored.id,
            transaction_date=stored.transaction_date,
            amount=stored.amount,
        )


class TransactionInsertResponse(CamelModel):
    insert_date_time: datetime = Field(
        description="First-ever insertion time for this id; identical on every replay"
    )
