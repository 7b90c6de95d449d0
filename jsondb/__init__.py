"""jsondb - schema-less JSON documents on SQLite, queried by nested path."""

__version__ = "1.0.0"

from .collection import Collection
from .exceptions import (
    BuilderStateError,
    DepthExceededError,
    DocumentNotFoundError,
    EngineError,
    InvalidPredicateError,
    JsonDbError,
    UnknownPathError,
    UnsupportedTypeError,
    ViewCleanupError,
    ViewLifecycleError,
)
from .indexer import IndexEntry, IndexStore, JsonType, scan
from .query import Direction, Operator, SqliteEngine, ViewBuilder, ViewExecutor

__all__ = [
    "__version__",
    "Collection",
    "IndexEntry",
    "IndexStore",
    "JsonType",
    "scan",
    "Direction",
    "Operator",
    "SqliteEngine",
    "ViewBuilder",
    "ViewExecutor",
    "JsonDbError",
    "UnsupportedTypeError",
    "DepthExceededError",
    "UnknownPathError",
    "InvalidPredicateError",
    "BuilderStateError",
    "EngineError",
    "ViewLifecycleError",
    "ViewCleanupError",
    "DocumentNotFoundError",
]
