"""
Canonical descriptor for the 'user_history' table.

Purpose:
- One row per reconstructed interval of a user's history.

Schema:
- columns:
    domain str, user_id i64, user_text_historical str, user_text str,
    user_groups_historical list[str], user_groups list[str],
    user_blocks_historical list[str], block_expiration_historical str,
    registration_timestamp str, start_timestamp str, end_timestamp str,
    caused_by_event_type str, caused_by_user_id i64
- partitioning: ["domain"]
- version: pinned to wikihist.core.versioning.SCHEMA_V

Notes:
- Rows with an empty registration_timestamp never reach this table; they are
  reported under the "empty-registration" diagnostics category instead.
"""

from __future__ import annotations

from ..grammar import TableDescriptor, TableName
from ..versioning import SCHEMA_V

USER_HISTORY_DESC = TableDescriptor(
    name=TableName.USER_HISTORY,
    columns={
        "domain": "str",
        "user_id": "i64",
        "user_text_historical": "str",
        "user_text": "str",
        "user_groups_historical": "list[str]",
        "user_groups": "list[str]",
        "user_blocks_historical": "list[str]",
        "block_expiration_historical": "str",
        "registration_timestamp": "str",
        "start_timestamp": "str",
        "end_timestamp": "str",
        "caused_by_event_type": "str",
        "caused_by_user_id": "i64",
    },
    partitioning=["domain"],
    required=[
        "domain",
        "user_id",
        "user_text_historical",
        "user_text",
        "user_groups_historical",
        "user_groups",
        "user_blocks_historical",
        "registration_timestamp",
        "caused_by_event_type",
    ],
    nullable=[
        "block_expiration_historical",
        "start_timestamp",
        "end_timestamp",
        "caused_by_user_id",
    ],
    version=SCHEMA_V,
)
