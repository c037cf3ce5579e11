"""
Canonical descriptor for the 'page_history' table.

Purpose:
- One row per reconstructed interval of a page's history; moves open new intervals,
  deletion closes the last one.

Schema:
- columns:
    domain str, page_id i64, title_historical str, title str,
    namespace_historical i64, namespace i64, namespace_is_content_historical bool,
    namespace_is_content bool, is_redirect bool, is_deleted bool,
    creation_timestamp str, start_timestamp str, end_timestamp str,
    caused_by_event_type str, caused_by_user_id i64
- partitioning: ["domain"]
- version: pinned to wikihist.core.versioning.SCHEMA_V
"""

from __future__ import annotations

from ..grammar import TableDescriptor, TableName
from ..versioning import SCHEMA_V

PAGE_HISTORY_DESC = TableDescriptor(
    name=TableName.PAGE_HISTORY,
    columns={
        "domain": "str",
        "page_id": "i64",
        "title_historical": "str",
        "title": "str",
        "namespace_historical": "i64",
        "namespace": "i64",
        "namespace_is_content_historical": "bool",
        "namespace_is_content": "bool",
        "is_redirect": "bool",
        "is_deleted": "bool",
        "creation_timestamp": "str",
        "start_timestamp": "str",
        "end_timestamp": "str",
        "caused_by_event_type": "str",
        "caused_by_user_id": "i64",
    },
    partitioning=["domain"],
    required=[
        "domain",
        "page_id",
        "title_historical",
        "title",
        "namespace_historical",
        "namespace",
        "namespace_is_content_historical",
        "namespace_is_content",
        "is_redirect",
        "is_deleted",
        "creation_timestamp",
        "caused_by_event_type",
    ],
    nullable=[
        "start_timestamp",
        "end_timestamp",
        "caused_by_user_id",
    ],
    version=SCHEMA_V,
)
