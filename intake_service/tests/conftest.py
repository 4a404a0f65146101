import pytest
from fastapi.testclient import TestClient

from app.config import TransactionOptions
from app.database import SqliteTransactionStore
from app.dependencies import get_options, get_store
from app.main import app
from app.memory_store import InMemoryTransactionStore


@pytest.fixture
def sqlite_store(tmp_path):
    """A fresh SQLite store per test."""
    store = SqliteTransactionStore(tmp_path / "test.db", timeout=30)
    store.initialize()
    return store


@pytest.fixture
def memory_store():
    store = InMemoryTransactionStore()
    store.initialize()
    return store


@pytest.fixture(params=["sqlite", "memory"])
def store(request, tmp_path):
    """Runs the test once against each store backend."""
    if request.param == "sqlite":
        store = SqliteTransactionStore(tmp_path / "test.db", timeout=30)
    else:
        store = InMemoryTransactionStore()
    store.initialize()
    return store


@pytest.fixture
def make_client(sqlite_store):
    """Build a TestClient bound to a store and options of the test's choosing."""

    def _make(strict: bool = False, store=None, raise_server_exceptions: bool = True):
        options = TransactionOptions(strict_idempotency=strict)
        target = store if store is not None else sqlite_store
        app.dependency_overrides[get_store] = lambda: target
        app.dependency_overrides[get_options] = lambda: options
        return TestClient(app, raise_server_exceptions=raise_server_exceptions)

    yield _make
    app.dependency_overrides.clear()


@pytest.fixture
def client(make_client):
    return make_client()

