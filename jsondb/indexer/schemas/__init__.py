"""
Schema module: jsondb database schema definitions.

Merges the domain schema modules into a unified TABLES registry.
"""

from .document_schema import DOCUMENT_TABLES
from .utils import Column, TableSchema

# ============================================================================
# UNIFIED TABLES REGISTRY
# ============================================================================

TABLES: dict[str, TableSchema] = {
    **DOCUMENT_TABLES,
}

__all__ = ["TABLES", "Column", "TableSchema"]
