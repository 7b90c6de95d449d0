"""jsondb query package.

- builder: compiles path predicates into a pivot view definition
- engine: relational capability (views, queries, transactions) on SQLite
- executor: creates, queries and drops the view as one atomic unit
"""

from .builder import BuilderState, Direction, Operator, ViewBuilder
from .engine import RelationalEngine, SqliteEngine
from .executor import ViewExecutor

__all__ = [
    "BuilderState",
    "Direction",
    "Operator",
    "RelationalEngine",
    "SqliteEngine",
    "ViewBuilder",
    "ViewExecutor",
]
