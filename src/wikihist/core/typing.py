"""
Lightweight typing aliases used across core schemas, keys and the history engine.

Notes:
    - Intended for use in annotations; no runtime logic.
    - Identity keys always start with the domain so that keys from different
      wikis never collide.

Examples:
    >>> from wikihist.core.typing import Timestamp, UserKey
    >>> key: UserKey = ("enwiki", "Alice")
    >>> Timestamp("20010115000000")
    '20010115000000'
"""

from __future__ import annotations

from typing import Any, NewType

__all__ = [
    "Timestamp",
    "EntityId",
    "UserKey",
    "PageKey",
    "IdentityKey",
    "JsonDict",
]

# MediaWiki timestamp, YYYYMMDDHHMMSS. Lexicographic order is chronological order.
Timestamp = NewType("Timestamp", str)
EntityId = NewType("EntityId", int)

# (domain, user_text)
UserKey = tuple[str, str]
# (domain, title, namespace)
PageKey = tuple[str, str, int]
IdentityKey = tuple[Any, ...]

JsonDict = dict[str, Any]
