"""Exceptions raised by the record stores and the insert engine.

Validation failures, exhausted capacity and idempotency conflicts are
ordinary outcomes and are returned as ``InsertOutcome`` values. Only the
conditions below are raised.
"""


class TransactionStoreError(Exception):
    """Base class for record store failures."""


class DuplicateKeyError(TransactionStoreError):
    """An insert collided with an identifier that is already stored."""

    def __init__(self, transaction_id):
        super().__init__(f"Transaction {transaction_id} already exists")
        self.transaction_id = transaction_id


class StoreUnavailableError(TransactionStoreError):
    """The store could not be reached or did not answer in time."""


class FatalStoreError(TransactionStoreError):
    """The store contradicted itself; the request cannot be reconciled.

    Raised when an insert fails on a duplicate key but the record is not
    there when it is looked up again.
    """
