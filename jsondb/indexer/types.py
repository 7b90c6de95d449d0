"""Shared data structures for the indexer.

This module contains the core data types used by:
- the scanner (produces IndexEntry records)
- IndexStore (persists and reloads them)
- ViewBuilder (maps JsonType to storage columns)

Kept separate to prevent circular imports between scanner and database.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any


class JsonType(str, Enum):
    """The closed set of JSON value kinds an index entry can hold.

    Integers and floating-point numbers both collapse to FLOAT.
    """

    FLOAT = "float"
    NULL = "null"
    BOOLEAN = "boolean"
    STRING = "string"
    ARRAY = "array"
    OBJECT = "object"

    @property
    def is_container(self) -> bool:
        """True for kinds that have children (array, object)."""
        return self in CONTAINER_TYPES


CONTAINER_TYPES = frozenset({JsonType.ARRAY, JsonType.OBJECT})


@dataclass(frozen=True)
class IndexEntry:
    """One flattened node of a JSON document.

    For containers ``value`` is the canonical JSON text of the whole subtree.
    """

    type: JsonType
    value: Any
    path: str
    depth: int

    def as_tuple(self) -> tuple[str, Any, str, int]:
        """(type, value, path, depth) with the type as its plain string."""
        return (self.type.value, self.value, self.path, self.depth)
