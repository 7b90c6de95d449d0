"""
Document schema definitions.

This module contains the two tables every jsondb database holds:
- documents: one row per stored document, body kept as canonical JSON text
- path_index: one row per flattened (type, value, path, depth) entry

Each entry fills exactly one typed value column (see STORAGE_COLUMNS in
schema.py); the other two stay NULL.
"""

from ..types import JsonType
from .utils import Column, TableSchema

_TYPE_CHECK = "type IN (" + ", ".join(f"'{kind.value}'" for kind in JsonType) + ")"


DOCUMENTS = TableSchema(
    name="documents",
    columns=[
        Column("oid", "TEXT", nullable=False, primary_key=True),
        Column("body", "TEXT", nullable=False),
    ],
)

PATH_INDEX = TableSchema(
    name="path_index",
    columns=[
        Column("oid", "TEXT", nullable=False),
        Column("seq", "INTEGER", nullable=False),  # pre-order position within the document
        Column("path", "TEXT", nullable=False),
        Column("type", "TEXT", nullable=False, check=_TYPE_CHECK),
        Column("depth", "INTEGER", nullable=False),
        Column("value_numeric", "REAL"),
        Column("value_boolean", "INTEGER"),
        Column("value_text", "TEXT"),
    ],
    primary_key=["oid", "seq"],
    indexes=[
        ("idx_path_index_path", ["path"]),
        ("idx_path_index_path_type", ["path", "type"]),
        ("idx_path_index_oid", ["oid"]),
    ],
)


DOCUMENT_TABLES: dict[str, TableSchema] = {
    "documents": DOCUMENTS,
    "path_index": PATH_INDEX,
}
