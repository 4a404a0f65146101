"""FastAPI dependencies: options, the shared store and the insert engine."""

import threading

from fastapi import Depends

from app.config import TransactionOptions, load_options
from app.engine import InsertEngine
from app.store import TransactionStore, build_store

_store: TransactionStore | None = None
_store_lock = threading.Lock()


def get_options() -> TransactionOptions:
    return load_options()


def get_store(options: TransactionOptions = Depends(get_options)) -> TransactionStore:
    """Return the process-wide store, creating it on first use."""
    global _store
    if _store is None:
        with _store_lock:
            if _store is None:
                _store = build_store(options)
    return _store


def set_store(store: TransactionStore | None) -> None:
    global _store
    with _store_lock:
        _store = store


def get_engine(
    store: TransactionStore = Depends(get_store),
    options: TransactionOptions = Depends(get_options),
) -> InsertEngine:
    return InsertEngine(store, strict_idempotency=options.strict_idempotency)
