"""
Canonical wikihist grammar and helpers.

Defines entity kinds, event types, diagnostic categories and table names, plus the
zero-IO normalization helpers (timestamps, domains, enum-like strings) used by the
record models.

Design principles
-----------------
1) One naming standard:
   - Enum classes: PascalCase
   - Enum member names: UPPER_SNAKE
   - Enum serialized values (wire/Parquet): lower_snake, except ErrorCategory
     whose values are the diagnostics contract consumed downstream
     ("empty-registration" keeps its dash).
   - Fields & columns elsewhere: lower_snake

2) Closed event vocabularies:
   - UserEventType and PageEventType list every event the history builders
     understand. The record models in ``wikihist.core.schema`` are a tagged
     union over exactly these values; adding a member means adding a model
     variant and a builder branch.

3) Timestamps:
   - Every timestamp is normalized to MediaWiki form ``YYYYMMDDHHMMSS`` so that
     string order is chronological order and year buckets are a prefix slice.

Examples
--------
>>> from wikihist.core.grammar import normalize_timestamp, user_event_type_from_value
>>> normalize_timestamp("2001-01-15T10:00:00Z")
'20010115100000'
>>> user_event_type_from_value("rename").value
'rename'
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Final

from .constants import TIMESTAMP_LENGTH
from .errors import GrammarError

if TYPE_CHECKING:
    from .versioning import SchemaVersion

__all__ = [
    "EntityKind",
    "UserEventType",
    "PageEventType",
    "ErrorCategory",
    "TableName",
    "TableDescriptor",
    # helpers/validators
    "is_lower_snake",
    "assert_lower_snake",
    "entity_kind_from_value",
    "user_event_type_from_value",
    "page_event_type_from_value",
    "error_category_from_value",
    "normalize_timestamp",
    "normalize_domain",
    "ensure_all_enum_values_lower_snake",
]


class EntityKind(Enum):
    """Kinds of entity whose history is reconstructed. Kinds never mix in one run."""

    USER = "user"
    PAGE = "page"


class UserEventType(Enum):
    """
    User log events understood by the user history builder.

    Members:
        CREATE: Account registration (newusers log).
        RENAME: User name change (renameuser log); changes the identity key.
        ALTERGROUPS: Group membership change (rights log).
        ALTERBLOCKS: Block, reblock or unblock (block log).
    """

    CREATE = "create"
    RENAME = "rename"
    ALTERGROUPS = "altergroups"
    ALTERBLOCKS = "alterblocks"


class PageEventType(Enum):
    """
    Page log events understood by the page history builder.

    Members:
        CREATE: Page creation.
        MOVE: Title and/or namespace change; changes the identity key.
        DELETE: Page deletion; terminal for the page's timeline.
    """

    CREATE = "create"
    MOVE = "move"
    DELETE = "delete"


class ErrorCategory(Enum):
    """Diagnostic categories written to the errors output."""

    PARSING = "parsing"
    MATCHING = "matching"
    EMPTY_REGISTRATION = "empty-registration"


class TableName(Enum):
    """Canonical output table names."""

    USER_HISTORY = "user_history"
    PAGE_HISTORY = "page_history"
    RECONSTRUCTION_ERRORS = "reconstruction_errors"


@dataclass(frozen=True)
class TableDescriptor:
    """
    Frozen descriptor for a canonical output table.

    Attributes:
        name (TableName): Canonical table identifier.
        columns (dict[str, str]): Mapping column_name -> dtype where dtype is one of
            {"i64","str","bool","list[str]"}.
        partitioning (list[str]): Partition columns (always ["domain"]).
        required (list[str]): Columns that must exist and be populated (non-null).
        nullable (list[str]): Columns permitted to contain nulls.
        version (SchemaVersion): Schema version pinned to SCHEMA_V.

    Notes:
        required ⊆ columns; (required ∪ nullable) == columns; required ∩ nullable = ∅
        are guarded by tests.
    """

    name: TableName
    columns: dict[str, str]
    partitioning: list[str]
    required: list[str]
    nullable: list[str]
    version: SchemaVersion


# ============================================================================
# Helpers & Validators (zero I/O)
# ============================================================================

_LOWER_SNAKE_RE: Final[re.Pattern[str]] = re.compile(r"^[a-z0-9]+(?:_[a-z0-9]+)*$")
_DOMAIN_RE: Final[re.Pattern[str]] = re.compile(r"^[a-z0-9_.-]+$")
_MW_FORMAT: Final[str] = "%Y%m%d%H%M%S"


def is_lower_snake(value: str) -> bool:
    """
    Check whether a string is lower_snake.

    Examples:
      >>> is_lower_snake("user_history")
      True
      >>> is_lower_snake("UserHistory")
      False
    """
    return bool(_LOWER_SNAKE_RE.match(value or ""))


def assert_lower_snake(value: str, what: str = "value") -> None:
    """
    Validate that a string is lower_snake.

    Raises:
      GrammarError: If value is not lower_snake.
    """
    if not is_lower_snake(value):
        raise GrammarError(f"{what} must be lower_snake (got: {value!r})")


def _enum_from_value(enum_cls: type[Enum], s: str, what: str) -> Any:
    assert_lower_snake(s, what)
    try:
        return enum_cls(s)
    except ValueError as exc:
        allowed = sorted(m.value for m in enum_cls)
        raise GrammarError(f"unknown {what} {s!r} (allowed: {allowed})") from exc


def entity_kind_from_value(s: str) -> EntityKind:
    """Parse a lower_snake string into an EntityKind."""
    return _enum_from_value(EntityKind, (s or "").strip().lower(), "entity kind")


def user_event_type_from_value(s: str) -> UserEventType:
    """
    Parse a lower_snake string into a UserEventType.

    Raises:
      GrammarError: If s is not lower_snake or is not a known user event type.
    """
    return _enum_from_value(UserEventType, s, "user event_type")


def page_event_type_from_value(s: str) -> PageEventType:
    """
    Parse a lower_snake string into a PageEventType.

    Raises:
      GrammarError: If s is not lower_snake or is not a known page event type.
    """
    return _enum_from_value(PageEventType, s, "page event_type")


def error_category_from_value(s: str) -> ErrorCategory:
    """Parse a diagnostics category value (e.g. "empty-registration")."""
    try:
        return ErrorCategory(s)
    except ValueError as exc:
        raise GrammarError(f"unknown error category {s!r}") from exc


def normalize_timestamp(value: Any) -> str:
    """
    Normalize a timestamp to MediaWiki form ``YYYYMMDDHHMMSS``.

    Args:
      value (Any): A 14-digit MediaWiki timestamp, an ISO-8601 string, or a
        ``datetime`` (aware values are converted to UTC, naive ones taken as UTC).

    Returns:
      str: 14-digit timestamp.

    Raises:
      GrammarError: If the value cannot be interpreted as a timestamp.

    Examples:
      >>> normalize_timestamp("20010115100000")
      '20010115100000'
      >>> from datetime import datetime
      >>> normalize_timestamp(datetime(2001, 1, 15, 10, 0, 0))
      '20010115100000'
    """
    if isinstance(value, datetime):
        dt = value.astimezone(UTC) if value.tzinfo is not None else value
        return dt.strftime(_MW_FORMAT)
    if not isinstance(value, str):
        raise GrammarError(f"timestamp must be a string or datetime (got {type(value).__name__})")
    s = value.strip()
    if len(s) == TIMESTAMP_LENGTH and s.isdigit():
        try:
            datetime.strptime(s, _MW_FORMAT)
        except ValueError as exc:
            raise GrammarError(f"invalid MediaWiki timestamp {value!r}") from exc
        return s
    try:
        dt = datetime.fromisoformat(s)
    except ValueError as exc:
        raise GrammarError(f"unrecognized timestamp {value!r}") from exc
    return normalize_timestamp(dt)


def normalize_domain(value: Any) -> str:
    """
    Normalize a wiki domain (database name, e.g. "enwiki") to lower case.

    Raises:
      GrammarError: If the domain is empty or contains path-unsafe characters.

    Examples:
      >>> normalize_domain(" EnWiki ")
      'enwiki'
    """
    s = str(value or "").strip().lower()
    if not _DOMAIN_RE.match(s):
        raise GrammarError(f"invalid domain {value!r}")
    return s


def ensure_all_enum_values_lower_snake(enums: Iterable[type[Enum]]) -> None:
    """
    Assert that every enum member's value is lower_snake.

    Raises:
      AssertionError: If any enum member has a non-lower_snake value.

    Examples:
      >>> ensure_all_enum_values_lower_snake([EntityKind, UserEventType, PageEventType, TableName])
    """
    for E in enums:
        for m in E:
            if not is_lower_snake(m.value):
                raise AssertionError(
                    f"{E.__name__}.{m.name} has non-lower_snake value: {m.value!r}"
                )
