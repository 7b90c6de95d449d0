"""Pytest configuration and fixtures."""
import pytest

from jsondb.indexer.database import IndexStore, connect
from jsondb.indexer.scanner import scan
from jsondb.query.engine import SqliteEngine
from jsondb.utils.logging import logger

PEOPLE = {
    "d1": {
        "name": "alice",
        "age": 30,
        "active": True,
        "address": {"city": "Paris"},
        "tags": ["a", "b"],
    },
    "d2": {
        "name": "bob",
        "age": 25,
        "active": False,
        "address": {"city": "Berlin"},
    },
    "d3": {
        "name": "carol",
        "age": 35,
        "nickname": None,
    },
}


@pytest.fixture
def people():
    """Sample documents keyed by oid (d1 < d2 < d3)."""
    return PEOPLE


@pytest.fixture
def conn():
    """In-memory database connection in autocommit mode."""
    conn = connect(":memory:")
    yield conn
    conn.close()


@pytest.fixture
def store(conn):
    """Empty IndexStore with schema created."""
    store = IndexStore(conn)
    store.create_schema()
    return store


@pytest.fixture
def engine(conn):
    """SqliteEngine sharing the store's connection."""
    return SqliteEngine(conn)


@pytest.fixture
def people_store(store, people):
    """IndexStore holding the entries of every sample document."""
    for oid, document in people.items():
        store.append(oid, scan(document))
    return store


@pytest.fixture
def log_records():
    """Capture loguru records emitted during the test."""
    records = []
    handler_id = logger.add(lambda message: records.append(message.record), level="DEBUG")
    yield records
    logger.remove(handler_id)
