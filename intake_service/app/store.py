"""
Record store interface and backend selection.

A store hands out units of work. A unit of work is a context manager; a
unit that exits without ``commit()`` (an exception, or a caller that went
away) is rolled back, and nothing it wrote or reserved survives.
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol
from uuid import UUID

from app.config import TransactionOptions
from app.records import StoredTransaction

logger = logging.getLogger("store")


class UnitOfWork(Protocol):
    def get_by_id(self, transaction_id: UUID) -> Optional[StoredTransaction]:
        ...

    def insert(self, record: StoredTransaction) -> None:
        """Stage ``record``; raises ``DuplicateKeyError`` on a taken id."""

    def increment_if_below(self, counter: str, maximum: int) -> bool:
        """Atomically add one to ``counter`` if it is below ``maximum``."""

    def commit(self) -> None:
        ...

    def rollback(self) -> None:
        ...

    def __enter__(self) -> "UnitOfWork":
        ...

    def __exit__(self, exc_type, exc, tb) -> None:
        ...


class TransactionStore(Protocol):
    backend: str

    def initialize(self, reset: bool = False) -> None:
        """Provision tables and the capacity counter if they are missing."""

    def begin_unit_of_work(self) -> UnitOfWork:
        ...

    def get_by_id(self, transaction_id: UUID) -> Optional[StoredTransaction]:
        """Committed lookup, outside any unit of work."""

    def capacity_used(self) -> int:
        ...

    def check_connection(self) -> bool:
        ...


def build_store(options: TransactionOptions) -> TransactionStore:
    """Create the store selected by ``options.store_backend``."""
    if options.store_backend == "memory":
        from app.memory_store import InMemoryTransactionStore

        logger.info("Using in-memory transaction store")
        return InMemoryTransactionStore(timeout=options.busy_timeout_seconds)

    if options.store_backend == "sqlite":
        from app.database import SqliteTransactionStore

        logger.info("Using SQLite transaction store at %s", options.database_path)
        return SqliteTransactionStore(options.database_path, timeout=options.busy_timeout_seconds)

    raise ValueError(f"Unknown transaction store backend: {options.store_backend!r}")
