"""SQLite-backed index store for flattened document entries.

IndexStore persists the entries produced by the scanner and answers the
path questions the query compiler asks: which paths exist, and with which
recorded types. Every value reaches SQLite as a bound parameter.
"""

import sqlite3
from collections.abc import Iterable, Iterator
from contextlib import contextmanager

from ..config import DB_TIMEOUT, DEFAULT_BATCH_SIZE, MAX_BATCH_SIZE
from ..exceptions import EngineError
from ..utils.logging import logger
from .schema import PATH_INDEX, TABLES, entry_from_row, storage_values, validate_all_tables
from .types import IndexEntry, JsonType

# Bound parameters per IN (...) list; stays under SQLite's variable limit
_IN_CHUNK = 500


def connect(db_path: str) -> sqlite3.Connection:
    """Open a connection in autocommit mode; transactions are explicit."""
    conn = sqlite3.connect(db_path, timeout=DB_TIMEOUT, isolation_level=None)
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute("PRAGMA synchronous=NORMAL")
    return conn


@contextmanager
def transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """Run the body inside BEGIN IMMEDIATE / COMMIT, rolling back on error.

    Joins the caller's transaction when one is already open.
    """
    if conn.in_transaction:
        yield conn
        return

    try:
        conn.execute("BEGIN IMMEDIATE")
    except sqlite3.Error as e:
        raise EngineError(f"Failed to begin transaction: {e}") from e

    try:
        yield conn
    except BaseException:
        conn.rollback()
        raise

    try:
        conn.commit()
    except sqlite3.Error as e:
        conn.rollback()
        raise EngineError(f"Failed to commit database changes: {e}") from e


def _chunks(items: list, size: int) -> Iterator[list]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


class IndexStore:
    """Persists and queries index entries by document id and path."""

    def __init__(self, conn: sqlite3.Connection, batch_size: int = DEFAULT_BATCH_SIZE):
        """Wrap an open connection (see connect())."""
        self.conn = conn

        if batch_size <= 0:
            self.batch_size = DEFAULT_BATCH_SIZE
        elif batch_size > MAX_BATCH_SIZE:
            self.batch_size = MAX_BATCH_SIZE
        else:
            self.batch_size = batch_size

    @classmethod
    def connect(cls, db_path: str, batch_size: int = DEFAULT_BATCH_SIZE) -> "IndexStore":
        """Open db_path and make sure the schema exists."""
        store = cls(connect(db_path), batch_size=batch_size)
        store.create_schema()
        return store

    def close(self) -> None:
        """Close the database connection."""
        self.conn.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Atomic unit for multi-statement writes."""
        with transaction(self.conn) as conn:
            yield conn

    # ========================================================
    # SCHEMA
    # ========================================================

    def create_schema(self) -> None:
        """Create all tables and indexes using schema.py definitions."""
        with self.transaction() as conn:
            for table_schema in TABLES.values():
                conn.execute(table_schema.create_table_sql())
                for create_index_sql in table_schema.create_indexes_sql():
                    conn.execute(create_index_sql)

    def validate_schema(self) -> bool:
        """Validate database schema matches expected definitions."""
        mismatches = validate_all_tables(self.conn.cursor())
        if not mismatches:
            logger.debug("All table schemas validated successfully")
            return True

        for table_name, errors in mismatches.items():
            for error in errors:
                logger.warning("Schema mismatch in {table}: {error}", table=table_name, error=error)
        return False

    # ========================================================
    # WRITES
    # ========================================================

    def append(self, oid: str, entries: Iterable[IndexEntry]) -> int:
        """Persist a document's entries in scan order.

        All batches go through one transaction, so a failure persists nothing.

        Returns:
            Number of rows written
        """
        rows = [
            (oid, seq, entry.path, entry.type.value, entry.depth, *storage_values(entry))
            for seq, entry in enumerate(entries)
        ]
        insert_sql = PATH_INDEX.insert_sql()

        try:
            with self.transaction() as conn:
                for batch in _chunks(rows, self.batch_size):
                    conn.executemany(insert_sql, batch)
        except sqlite3.Error as e:
            raise EngineError(f"Failed to append index entries for {oid}: {e}", {"oid": oid}) from e

        logger.debug("Appended {count} index entries for {oid}", count=len(rows), oid=oid)
        return len(rows)

    def delete(self, oid: str) -> int:
        """Remove every entry of a document. Returns the number removed."""
        try:
            with self.transaction() as conn:
                cursor = conn.execute("DELETE FROM path_index WHERE oid = ?", (oid,))
        except sqlite3.Error as e:
            raise EngineError(f"Failed to delete index entries for {oid}: {e}", {"oid": oid}) from e
        return cursor.rowcount

    # ========================================================
    # READS
    # ========================================================

    def _fetchall(self, sql: str, params: tuple = ()) -> list[tuple]:
        try:
            return self.conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            raise EngineError(f"Index query failed: {e}", {"sql": sql}) from e

    def query(self, paths: Iterable[str], type: JsonType | str | None = None) -> list[tuple[str, str]]:
        """Distinct (path, type) rows recorded for the given paths.

        Args:
            paths: Paths to look up; unknown paths simply produce no rows
            type: Restrict to one recorded kind

        Returns:
            Rows sorted by path then type
        """
        wanted = list(dict.fromkeys(paths))
        type_clause = ""
        type_params: tuple = ()
        if type is not None:
            type_clause = " AND type = ?"
            type_params = (JsonType(type).value,)

        rows: set[tuple[str, str]] = set()
        for chunk in _chunks(wanted, _IN_CHUNK):
            placeholders = ", ".join("?" for _ in chunk)
            sql = (
                f"SELECT DISTINCT path, type FROM path_index "
                f"WHERE path IN ({placeholders}){type_clause}"
            )
            rows.update(self._fetchall(sql, (*chunk, *type_params)))
        return sorted(rows)

    def distinct_paths(self) -> list[str]:
        """Every path recorded for any document."""
        rows = self._fetchall("SELECT DISTINCT path FROM path_index ORDER BY path")
        return [row[0] for row in rows]

    def document_ids(self) -> list[str]:
        """Every document id that has at least one entry (the anchor set)."""
        rows = self._fetchall("SELECT DISTINCT oid FROM path_index ORDER BY oid")
        return [row[0] for row in rows]

    def entries(self, oid: str) -> list[IndexEntry]:
        """A document's entries in the order they were scanned."""
        rows = self._fetchall(
            "SELECT path, type, depth, value_numeric, value_boolean, value_text "
            "FROM path_index WHERE oid = ? ORDER BY seq",
            (oid,),
        )
        return [entry_from_row(row) for row in rows]
