"""
Stable hashing for shard routing and pseudo ids.

Python's builtin ``hash`` is salted per process, so anything that decides where a
record goes or which id it gets is derived from SHA-256 over canonical JSON
instead: same record, same number, on every run and every machine.

Canonical JSON here means sorted keys, ``(",", ":")`` separators and unicode kept
as is (``ensure_ascii=False``).
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping
from typing import Any

__all__ = [
    "json_dumps_canonical",
    "stable_int_hash",
    "id_or_hash_negative",
]

# 60 bits keeps pseudo ids well inside the int64 range of the output tables.
_HASH_BITS = 60


def json_dumps_canonical(obj: Any) -> str:
    """Canonical JSON text of ``obj`` (must be JSON-serializable)."""
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def _digest_bits(text: str) -> int:
    digest = hashlib.sha256(text.encode("utf-8")).hexdigest()
    return int(digest[: _HASH_BITS // 4], 16)


def stable_int_hash(*parts: Any) -> int:
    """
    Non-negative integer hash of the given JSON-serializable parts.

    Examples:
        >>> stable_int_hash("enwiki", 42) == stable_int_hash("enwiki", 42)
        True
        >>> stable_int_hash("enwiki", 42) >= 0
        True
    """
    return _digest_bits(json_dumps_canonical(list(parts)))


def id_or_hash_negative(entity_id: int | None, record: Mapping[str, Any]) -> int:
    """
    Return ``entity_id`` when it is a valid (strictly positive) id, else a negative pseudo id.

    The pseudo id is derived from the canonical JSON of the whole record, so the same
    malformed record always lands on the same id (and the same shard) while never
    colliding with a real id.

    Args:
        entity_id (int | None): Natural identifier, possibly missing or invalid.
        record (Mapping[str, Any]): JSON-serializable view of the full record.

    Returns:
        int: ``entity_id`` if > 0, otherwise a value < 0.

    Notes:
        Two distinct malformed records can in theory share a pseudo id. This is an
        accepted approximation, not a uniqueness guarantee.

    Examples:
        >>> id_or_hash_negative(42, {"a": 1})
        42
        >>> id_or_hash_negative(None, {"a": 1}) < 0
        True
    """
    if isinstance(entity_id, int) and not isinstance(entity_id, bool) and entity_id > 0:
        return entity_id
    return -(1 + _digest_bits(json_dumps_canonical(dict(record))))
