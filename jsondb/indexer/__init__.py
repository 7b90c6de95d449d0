"""jsondb indexer package.

- scanner: flattens a JSON document into (type, value, path, depth) entries
- database: IndexStore persisting those entries in SQLite
- schema: table definitions and the type -> storage column mapping
"""

from .database import IndexStore
from .scanner import json_type, scan, scan_json
from .types import IndexEntry, JsonType

__all__ = [
    "IndexEntry",
    "IndexStore",
    "JsonType",
    "json_type",
    "scan",
    "scan_json",
]
