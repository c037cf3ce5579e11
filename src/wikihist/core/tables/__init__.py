"""
Frozen table descriptors for wikihist outputs (Parquet/Arrow-like).

Notes:
    - Descriptors declare column names/dtypes, partitioning, required/nullable
      columns, and the pinned schema version.
    - Column names are lower_snake.
    - Partitioning is always ["domain"]; histories of different wikis are stored
      under separate domain=<name> directories.
    - Core is zero-IO; wikihist.io materializes and validates frames against these.
"""

from __future__ import annotations

from ..grammar import EntityKind, TableDescriptor, TableName
from .page_history import PAGE_HISTORY_DESC
from .reconstruction_errors import RECONSTRUCTION_ERRORS_DESC
from .user_history import USER_HISTORY_DESC

__all__ = [
    "TableDescriptor",
    "USER_HISTORY_DESC",
    "PAGE_HISTORY_DESC",
    "RECONSTRUCTION_ERRORS_DESC",
    "get_table",
    "list_tables",
    "history_table_for",
]


# Registry
_TABLES: dict[TableName, TableDescriptor] = {
    USER_HISTORY_DESC.name: USER_HISTORY_DESC,
    PAGE_HISTORY_DESC.name: PAGE_HISTORY_DESC,
    RECONSTRUCTION_ERRORS_DESC.name: RECONSTRUCTION_ERRORS_DESC,
}


def get_table(name: TableName) -> TableDescriptor:
    """
    Look up a table descriptor by canonical name.

    Args:
        name (TableName): Canonical table name.

    Returns:
        TableDescriptor: Descriptor for the requested table.
    """
    return _TABLES[name]


def list_tables() -> list[TableDescriptor]:
    """Return all registered table descriptors in registry order."""
    return list(_TABLES.values())


def history_table_for(kind: EntityKind) -> TableDescriptor:
    """Descriptor of the reconstructed-history table for an entity kind."""
    if kind is EntityKind.USER:
        return USER_HISTORY_DESC
    return PAGE_HISTORY_DESC
