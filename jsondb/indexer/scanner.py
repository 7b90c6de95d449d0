"""Path indexer - flattens a JSON document into typed index entries.

Usage:
    from jsondb.indexer.scanner import scan
    entries = scan({"name": "jason bourne", "category": "agent"})
    # -> ("string", "jason bourne", "name", 0), ("string", "agent", "category", 0)

Entries come out depth-first, pre-order: a container's own entry precedes
every entry of its descendants, and siblings keep their natural order
(object insertion order, array index order).

The walk uses an explicit work stack, so nesting depth is bounded by
``max_depth`` (never more than MAX_DEPTH_CAP) instead of the interpreter's
recursion limit. Container values are serialised only after the whole
document has been classified, so a failing document never costs a partial
serialisation.
"""

import json
import math
from typing import Any

from ..config import MAX_DEPTH_CAP, MAX_SCAN_DEPTH
from ..exceptions import DepthExceededError, UnsupportedTypeError
from ..utils.logging import logger
from .types import IndexEntry, JsonType


def json_type(value: Any, path: str = "") -> JsonType:
    """Classify a decoded JSON value into exactly one JsonType.

    Raises:
        UnsupportedTypeError: value is not one of the six JSON kinds
    """
    if value is None:
        return JsonType.NULL
    # bool is an int subclass, so it must be checked before numbers
    if isinstance(value, bool):
        return JsonType.BOOLEAN
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            raise UnsupportedTypeError(path, repr(value))
        return JsonType.FLOAT
    if isinstance(value, str):
        if not utf8_encodable(value):
            raise UnsupportedTypeError(path, "str with unpaired surrogate")
        return JsonType.STRING
    if isinstance(value, (list, tuple)):
        return JsonType.ARRAY
    if isinstance(value, dict):
        return JsonType.OBJECT
    raise UnsupportedTypeError(path, type(value).__name__)


def utf8_encodable(text: str) -> bool:
    """False for strings SQLite cannot store, such as lone surrogates."""
    try:
        text.encode("utf-8")
    except UnicodeEncodeError:
        return False
    return True


def serialize(value: Any) -> str:
    """Canonical JSON text for a container subtree."""
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False, allow_nan=False)


def _child_path(prefix: str, key: str) -> str:
    return f"{prefix}.{key}" if prefix else key


def _children(container: Any, prefix: str, depth: int) -> list[tuple[str, Any, int]]:
    """(path, value, depth) for each child, in natural key order."""
    if isinstance(container, dict):
        children = []
        for key, value in container.items():
            if not isinstance(key, str):
                raise UnsupportedTypeError(
                    _child_path(prefix, str(key)), f"{type(key).__name__} key"
                )
            if not utf8_encodable(key):
                raise UnsupportedTypeError(prefix, "key with unpaired surrogate")
            children.append((_child_path(prefix, key), value, depth))
        return children
    return [
        (_child_path(prefix, str(index)), value, depth)
        for index, value in enumerate(container)
    ]


def _entry_value(kind: JsonType, value: Any, path: str) -> Any:
    if kind.is_container:
        return serialize(value)
    if kind is JsonType.FLOAT:
        try:
            return float(value)
        except OverflowError:
            raise UnsupportedTypeError(path, "int out of float range") from None
    return value


def scan(document: Any, max_depth: int = MAX_SCAN_DEPTH) -> list[IndexEntry]:
    """Flatten a decoded JSON value into an ordered list of index entries.

    Args:
        document: Decoded JSON value (dict, list, str, number, bool or None)
        max_depth: Deepest allowed entry depth (root children are depth 0),
            clamped to MAX_DEPTH_CAP

    Returns:
        Fresh list of IndexEntry in pre-order. A scalar root has no keys
        and yields an empty list.

    Raises:
        UnsupportedTypeError: a value outside the six JSON kinds was found
        DepthExceededError: an entry would be deeper than max_depth
    """
    max_depth = min(max_depth, MAX_DEPTH_CAP)
    root_kind = json_type(document)
    if not root_kind.is_container:
        return []

    nodes: list[tuple[JsonType, Any, str, int]] = []
    stack = _children(document, "", 0)
    stack.reverse()

    while stack:
        path, value, depth = stack.pop()
        if depth > max_depth:
            raise DepthExceededError(path, depth, max_depth)

        kind = json_type(value, path)
        nodes.append((kind, value, path, depth))

        if kind.is_container:
            children = _children(value, path, depth + 1)
            children.reverse()
            stack.extend(children)

    entries = [
        IndexEntry(kind, _entry_value(kind, value, path), path, depth)
        for kind, value, path, depth in nodes
    ]
    logger.debug("Scanned document into {count} index entries", count=len(entries))
    return entries


def scan_json(text: str | bytes, max_depth: int = MAX_SCAN_DEPTH) -> list[IndexEntry]:
    """Decode JSON text and scan it.

    Raises:
        json.JSONDecodeError: text is not valid JSON
        DepthExceededError: text nests too deep for the decoder
    """
    try:
        document = json.loads(text)
    except RecursionError:
        limit = min(max_depth, MAX_DEPTH_CAP)
        raise DepthExceededError("", limit + 1, limit) from None
    return scan(document, max_depth=max_depth)
