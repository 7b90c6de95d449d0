"""Database schema definitions - Single Source of Truth."""

import sqlite3
from typing import Any

from .schemas import TABLES
from .types import IndexEntry, JsonType

assert len(TABLES) == 2, f"Schema contract violation: Expected 2 tables, got {len(TABLES)}"


DOCUMENTS = TABLES["documents"]
PATH_INDEX = TABLES["path_index"]


# Type -> storage column. Must cover every JsonType; NULL entries keep every
# value column NULL, value_text is the column a pivot projects for them.
STORAGE_COLUMNS: dict[JsonType, str] = {
    JsonType.FLOAT: "value_numeric",
    JsonType.NULL: "value_text",
    JsonType.BOOLEAN: "value_boolean",
    JsonType.STRING: "value_text",
    JsonType.ARRAY: "value_text",
    JsonType.OBJECT: "value_text",
}

assert set(STORAGE_COLUMNS) == set(JsonType), "STORAGE_COLUMNS out of sync with JsonType"

VALUE_COLUMNS = ("value_numeric", "value_boolean", "value_text")


def storage_values(entry: IndexEntry) -> tuple[Any, Any, Any]:
    """(value_numeric, value_boolean, value_text) for one entry."""
    if entry.type is JsonType.NULL:
        return (None, None, None)
    values: dict[str, Any] = dict.fromkeys(VALUE_COLUMNS)
    value = entry.value
    if entry.type is JsonType.BOOLEAN:
        value = int(value)
    values[STORAGE_COLUMNS[entry.type]] = value
    return (values["value_numeric"], values["value_boolean"], values["value_text"])


def entry_from_row(row: tuple) -> IndexEntry:
    """Rebuild an IndexEntry from (path, type, depth, value_numeric, value_boolean, value_text)."""
    path, kind, depth, numeric, boolean, text = row
    kind = JsonType(kind)
    if kind is JsonType.FLOAT:
        value = numeric
    elif kind is JsonType.BOOLEAN:
        value = bool(boolean)
    elif kind is JsonType.NULL:
        value = None
    else:
        value = text
    return IndexEntry(kind, value, path, depth)


def validate_all_tables(cursor: sqlite3.Cursor) -> dict[str, list[str]]:
    """Validate all table schemas against actual database."""
    results = {}
    for table_name, schema in TABLES.items():
        is_valid, errors = schema.validate_against_db(cursor)
        if not is_valid:
            results[table_name] = errors
    return results
