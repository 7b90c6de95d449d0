"""Document collection - keeps stored documents and their index in lockstep.

Usage:
    with Collection("people.db") as people:
        oid = people.insert({"name": "jason bourne", "category": "agent"})
        query = people.query().where("category", "=", "agent").order_by("name")
        for oid, document in people.find(query):
            ...
"""

import json
import sqlite3
import uuid
from typing import Any

from .config import MAX_SCAN_DEPTH
from .exceptions import DocumentNotFoundError, EngineError
from .indexer.database import IndexStore, connect
from .indexer.schema import DOCUMENTS
from .indexer.scanner import scan, serialize
from .query.builder import ViewBuilder
from .query.engine import SqliteEngine
from .query.executor import ViewExecutor
from .utils.logging import logger


class Collection:
    """JSON documents on SQLite, queryable by nested path."""

    def __init__(self, db_path: str = ":memory:", max_depth: int = MAX_SCAN_DEPTH):
        self.db_path = db_path
        self.max_depth = max_depth

        conn = connect(db_path)
        self.store = IndexStore(conn)
        self.store.create_schema()
        self.engine = SqliteEngine(conn)
        self.executor = ViewExecutor(self.engine)

    def __enter__(self) -> "Collection":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        self.store.close()

    @property
    def conn(self):
        return self.store.conn

    # ========================================================
    # DOCUMENTS
    # ========================================================

    def insert(self, document: Any, oid: str | None = None) -> str:
        """Store a document and index it. Returns its oid.

        The document is scanned before anything is written, so an
        unindexable document leaves the database untouched.
        """
        entries = scan(document, max_depth=self.max_depth)
        oid = oid or uuid.uuid4().hex

        try:
            with self.store.transaction() as conn:
                conn.execute(DOCUMENTS.insert_sql(), (oid, serialize(document)))
                self.store.append(oid, entries)
        except sqlite3.IntegrityError as e:
            raise EngineError(f"Document {oid} already exists", {"oid": oid}) from e

        logger.debug("Inserted document {oid} ({count} entries)", oid=oid, count=len(entries))
        return oid

    def get(self, oid: str) -> Any | None:
        """Decoded document, or None if it does not exist."""
        row = self.conn.execute(
            f"SELECT body FROM {DOCUMENTS.name} WHERE oid = ?", (oid,)
        ).fetchone()
        return json.loads(row[0]) if row else None

    def update(self, oid: str, document: Any) -> None:
        """Replace a document and its index entries atomically.

        Raises:
            DocumentNotFoundError: oid is not stored
        """
        entries = scan(document, max_depth=self.max_depth)

        with self.store.transaction() as conn:
            cursor = conn.execute(
                f"UPDATE {DOCUMENTS.name} SET body = ? WHERE oid = ?", (serialize(document), oid)
            )
            if cursor.rowcount == 0:
                raise DocumentNotFoundError(oid)
            self.store.delete(oid)
            self.store.append(oid, entries)

        logger.debug("Updated document {oid}", oid=oid)

    def delete(self, oid: str) -> bool:
        """Remove a document and its entries. Returns False if it did not exist."""
        with self.store.transaction() as conn:
            cursor = conn.execute(f"DELETE FROM {DOCUMENTS.name} WHERE oid = ?", (oid,))
            self.store.delete(oid)
        return cursor.rowcount > 0

    def count(self) -> int:
        return self.conn.execute(f"SELECT COUNT(*) FROM {DOCUMENTS.name}").fetchone()[0]

    # ========================================================
    # QUERIES
    # ========================================================

    def query(self) -> ViewBuilder:
        """Fresh builder bound to this collection's index."""
        return ViewBuilder(self.store)

    def find_ids(self, builder: ViewBuilder) -> list[str]:
        """Ids of matching documents, in the builder's order."""
        return self.executor.execute(builder)

    def find(self, builder: ViewBuilder) -> list[tuple[str, Any]]:
        """(oid, document) pairs of matching documents, in the builder's order."""
        oids = self.find_ids(builder)
        results = []
        for oid in oids:
            document = self.get(oid)
            if document is not None:
                results.append((oid, document))
        return results
