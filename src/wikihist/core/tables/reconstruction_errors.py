"""
Canonical descriptor for the 'reconstruction_errors' diagnostics table.

Schema:
- columns: domain str, category str, data str
- category ∈ {"parsing", "matching", "empty-registration"}
- data holds the canonical JSON text of the offending record.
"""

from __future__ import annotations

from ..grammar import TableDescriptor, TableName
from ..versioning import SCHEMA_V

RECONSTRUCTION_ERRORS_DESC = TableDescriptor(
    name=TableName.RECONSTRUCTION_ERRORS,
    columns={
        "domain": "str",
        "category": "str",
        "data": "str",
    },
    partitioning=["domain"],
    required=["domain", "category", "data"],
    nullable=[],
    version=SCHEMA_V,
)
