"""
Lightweight JSON serialization helpers for diagnostics and raw records.

Re-exports ``json_dumps_canonical`` from ``wikihist.core.hashing`` so the codebase has a
single canonical JSON policy, and adds the coercions needed to turn raw input rows
(which may hold datetimes, dates or other non-JSON scalars) into diagnostics text.
This module is zero-IO.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from datetime import date, datetime
from typing import Any

from .hashing import json_dumps_canonical

__all__ = [
    "json_loads",
    "json_dumps_canonical",
    "to_jsonable",
]


def json_loads(s: str) -> Any:
    """Deserialize a JSON string using the stdlib json module (no custom hooks)."""
    return json.loads(s)


def to_jsonable(obj: Any) -> Any:
    """
    Recursively convert a raw value into JSON-serializable data.

    Mappings become dicts with string keys, sequences become lists, datetimes/dates
    become ISO strings and any other unknown scalar becomes ``str(obj)``.

    Examples:
        >>> to_jsonable({"ts": date(2001, 1, 15), "ids": (1, 2)})
        {'ts': '2001-01-15', 'ids': [1, 2]}
    """
    if obj is None or isinstance(obj, (bool, int, float, str)):
        return obj
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, Mapping):
        return {str(k): to_jsonable(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple, set, frozenset)):
        return [to_jsonable(v) for v in obj]
    return str(obj)
