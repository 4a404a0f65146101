"""Service options read from the environment."""

import os
from dataclasses import dataclass
from pathlib import Path

_TRUE_VALUES = {"1", "true", "yes"}

# Fixed maximum number of records the store will ever admit
MAX_TRANSACTIONS = 100

DEFAULT_DB_PATH = Path(__file__).parent.parent / "transactions.db"


def _env_flag(name: str, default: str = "false") -> bool:
    return os.environ.get(name, default).strip().lower() in _TRUE_VALUES


@dataclass(frozen=True)
class TransactionOptions:
    """Runtime options for the insert protocol and its store.

    Attributes:
        strict_idempotency: Reject replays whose payload differs from the
            stored record instead of answering them as successes.
        store_backend: ``"sqlite"`` (durable) or ``"memory"``.
        database_path: SQLite file used by the ``sqlite`` backend.
        busy_timeout_seconds: How long a SQLite unit of work waits for the
            write lock held by another writer.
    """

    strict_idempotency: bool = False
    store_backend: str = "sqlite"
    database_path: Path = DEFAULT_DB_PATH
    busy_timeout_seconds: float = 5.0


def load_options() -> TransactionOptions:
    return TransactionOptions(
        strict_idempotency=_env_flag("STRICT_IDEMPOTENCY"),
        store_backend=os.environ.get("TRANSACTION_STORE", "sqlite").strip().lower(),
        database_path=Path(os.environ.get("DATABASE_PATH", str(DEFAULT_DB_PATH))),
        busy_timeout_seconds=float(os.environ.get("DB_BUSY_TIMEOUT_SECONDS", "5")),
    )


def reset_on_start() -> bool:
    return _env_flag("DB_RESET_ON_START")
