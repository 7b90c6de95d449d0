"""Relational engine capability used by the view executor.

RelationalEngine is the contract: create a view, drop it, run a query, and
run a unit of work atomically. SqliteEngine implements it on sqlite3 with
explicit BEGIN IMMEDIATE transactions, so DDL and queries issued inside
run_in_transaction are invisible to other connections until commit.
"""

import sqlite3
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from typing import Any, TypeVar

from ..exceptions import EngineError
from ..indexer.database import connect, transaction
from ..utils.logging import logger
from .sql import quote_identifier

T = TypeVar("T")


class RelationalEngine(ABC):
    """Abstract view/query/transaction capability set."""

    @abstractmethod
    def create_view(self, name: str, definition_sql: str) -> None:
        """CREATE VIEW name AS definition_sql."""

    @abstractmethod
    def drop_view_if_exists(self, name: str) -> None:
        """DROP VIEW IF EXISTS name."""

    @abstractmethod
    def run_query(self, select_sql: str, params: Sequence[Any] = ()) -> list[tuple]:
        """Run a SELECT and return all rows."""

    @abstractmethod
    def run_in_transaction(self, unit_of_work: Callable[["RelationalEngine"], T]) -> T:
        """Run unit_of_work(self) atomically; roll back if it raises."""

    @abstractmethod
    def view_exists(self, name: str) -> bool:
        """True if a view with this name is in the catalog."""

    @abstractmethod
    def list_views(self) -> list[str]:
        """Names of all views in the catalog."""


class SqliteEngine(RelationalEngine):
    """RelationalEngine over one sqlite3 connection."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    @classmethod
    def connect(cls, db_path: str) -> "SqliteEngine":
        """Open a dedicated connection to db_path."""
        return cls(connect(db_path))

    def close(self) -> None:
        self.conn.close()

    def _execute(self, sql: str, params: Sequence[Any] = ()) -> sqlite3.Cursor:
        try:
            return self.conn.execute(sql, tuple(params))
        except sqlite3.Error as e:
            raise EngineError(str(e), {"sql": sql}) from e

    def create_view(self, name: str, definition_sql: str) -> None:
        logger.debug("Creating view {view}", view=name)
        self._execute(f"CREATE VIEW {quote_identifier(name)} AS {definition_sql}")

    def drop_view_if_exists(self, name: str) -> None:
        logger.debug("Dropping view {view}", view=name)
        self._execute(f"DROP VIEW IF EXISTS {quote_identifier(name)}")

    def run_query(self, select_sql: str, params: Sequence[Any] = ()) -> list[tuple]:
        return self._execute(select_sql, params).fetchall()

    def run_in_transaction(self, unit_of_work: Callable[["SqliteEngine"], T]) -> T:
        with transaction(self.conn):
            return unit_of_work(self)

    def view_exists(self, name: str) -> bool:
        row = self._execute(
            "SELECT 1 FROM sqlite_master WHERE type = 'view' AND name = ?", (name,)
        ).fetchone()
        return row is not None

    def list_views(self) -> list[str]:
        rows = self._execute(
            "SELECT name FROM sqlite_master WHERE type = 'view' ORDER BY name"
        ).fetchall()
        return [row[0] for row in rows]
