"""
Pydantic v2 models for history records: change events, snapshot states,
reconstructed intervals and diagnostics rows.

Responsibilities
- Define the tagged event variants the history builders dispatch on. Each variant
  carries exactly the fields its event type needs; ``event_type`` is the tag.
- Expose the identity edge of every event (``from_key`` -> ``to_key``) consumed by
  the identity graph.
- Normalize domains and timestamps through grammar helpers and enforce interval
  invariants (start <= end).
- Convert raw input rows into typed records without ever raising: rows that fail
  validation become ``UnparsedEvent`` records carrying their parsing errors.

Style
- Zero-IO (stdlib + pydantic only).
- Models are frozen; builders derive new intervals with ``model_copy(update=...)``.

Examples:
    >>> from wikihist.core.schema import parse_user_event, UserRename
    >>> ev = parse_user_event({
    ...     "domain": "enwiki", "timestamp": "20010115000000", "event_type": "rename",
    ...     "user_text": "Alice", "new_user_text": "Alicia",
    ... })
    >>> isinstance(ev, UserRename), ev.from_key, ev.to_key
    (True, ('enwiki', 'Alice'), ('enwiki', 'Alicia'))
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Annotated, Any, ClassVar, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from .errors import SchemaError
from .grammar import (
    PageEventType,
    UserEventType,
    error_category_from_value,
    normalize_domain,
    normalize_timestamp,
)
from .keys import PartitionKey, StateKey
from .serde import to_jsonable
from .typing import JsonDict, PageKey, UserKey

__all__ = [
    # Events
    "EntityEventBase",
    "UserEventBase",
    "UserCreate",
    "UserRename",
    "UserAlterGroups",
    "UserAlterBlocks",
    "UserEvent",
    "PageEventBase",
    "PageCreate",
    "PageMove",
    "PageDelete",
    "PageEvent",
    "UnparsedEvent",
    # Snapshots / intervals
    "UserSnapshot",
    "PageSnapshot",
    "UserState",
    "PageState",
    # Diagnostics
    "ErrorRow",
    # Parsing
    "USER_EVENT_VARIANTS",
    "PAGE_EVENT_VARIANTS",
    "parse_user_event",
    "parse_page_event",
    "parse_user_snapshot",
    "parse_page_snapshot",
]


def _optional_timestamp(v: Any) -> Any:
    if v is None or (isinstance(v, str) and not v.strip()):
        return None
    return normalize_timestamp(v)


# ============================================================================
# Events
# ============================================================================


class EntityEventBase(BaseModel):
    """
    Fields shared by every change event.

    Attributes:
        domain (str): Wiki database name (normalized lower case).
        timestamp (str): Event time, YYYYMMDDHHMMSS.
        caused_by_user_id (int | None): Id of the performing user, when known.
        sorting_id (int | None): Tie-break for events sharing a timestamp (log id).
        parsing_errors (list[str]): Problems found by the extract step. Events with
            a non-empty list are kept for diagnostics only.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    is_creation: ClassVar[bool] = False
    is_terminal: ClassVar[bool] = False

    domain: str
    timestamp: str
    caused_by_user_id: int | None = None
    sorting_id: int | None = None
    parsing_errors: list[str] = Field(default_factory=list)

    @field_validator("domain", mode="before")
    @classmethod
    def _normalize_domain(cls, v: Any) -> str:
        return normalize_domain(v)

    @field_validator("timestamp", mode="before")
    @classmethod
    def _normalize_timestamp(cls, v: Any) -> str:
        return normalize_timestamp(v)

    @property
    def entity_id(self) -> int | None:  # pragma: no cover - overridden
        raise NotImplementedError

    @property
    def from_key(self) -> tuple[Any, ...]:  # pragma: no cover - overridden
        raise NotImplementedError

    @property
    def to_key(self) -> tuple[Any, ...]:
        return self.from_key

    @property
    def is_identity_change(self) -> bool:
        return self.from_key != self.to_key


class UserEventBase(EntityEventBase):
    """
    User event. ``user_text`` is the target user's name as recorded at event time.

    Attributes:
        user_id (int | None): Target user id when the log row carries it.
        user_text (str): Target user name at event time.
    """

    user_id: int | None = None
    user_text: str

    @property
    def entity_id(self) -> int | None:
        return self.user_id

    @property
    def from_key(self) -> UserKey:
        return (self.domain, self.user_text)


class UserCreate(UserEventBase):
    """Account registration."""

    is_creation: ClassVar[bool] = True
    event_type: Literal["create"] = "create"


class UserRename(UserEventBase):
    """Rename from ``user_text`` to ``new_user_text``."""

    event_type: Literal["rename"] = "rename"
    new_user_text: str

    @property
    def to_key(self) -> UserKey:
        return (self.domain, self.new_user_text)


class UserAlterGroups(UserEventBase):
    """Group membership change; ``new_groups`` is the complete membership afterwards."""

    event_type: Literal["altergroups"] = "altergroups"
    old_groups: list[str] = Field(default_factory=list)
    new_groups: list[str] = Field(default_factory=list)


class UserAlterBlocks(UserEventBase):
    """
    Block state change. An empty ``new_blocks`` list means unblocked.

    Attributes:
        new_blocks (list[str]): Block flags in force afterwards (e.g. "nocreate").
        block_expiration (str | None): "indefinite" or an expiry timestamp.
    """

    event_type: Literal["alterblocks"] = "alterblocks"
    new_blocks: list[str] = Field(default_factory=list)
    block_expiration: str | None = None


UserEvent = Annotated[
    UserCreate | UserRename | UserAlterGroups | UserAlterBlocks,
    Field(discriminator="event_type"),
]


class PageEventBase(EntityEventBase):
    """
    Page event. ``(title, namespace)`` is the page's identity at event time.

    Attributes:
        page_id (int | None): Page id when the log row carries it.
        title (str): Title without namespace prefix, at event time.
        namespace (int): Namespace number at event time.
        namespace_is_content (bool): Whether that namespace is a content namespace.
    """

    page_id: int | None = None
    title: str
    namespace: int
    namespace_is_content: bool = False

    @property
    def entity_id(self) -> int | None:
        return self.page_id

    @property
    def from_key(self) -> PageKey:
        return (self.domain, self.title, self.namespace)


class PageCreate(PageEventBase):
    """Page creation."""

    is_creation: ClassVar[bool] = True
    event_type: Literal["create"] = "create"


class PageMove(PageEventBase):
    """Move to ``(new_title, new_namespace)``."""

    event_type: Literal["move"] = "move"
    new_title: str
    new_namespace: int
    new_namespace_is_content: bool = False

    @property
    def to_key(self) -> PageKey:
        return (self.domain, self.new_title, self.new_namespace)


class PageDelete(PageEventBase):
    """Page deletion; closes the page's final interval."""

    is_terminal: ClassVar[bool] = True
    event_type: Literal["delete"] = "delete"


PageEvent = Annotated[PageCreate | PageMove | PageDelete, Field(discriminator="event_type")]


class UnparsedEvent(BaseModel):
    """
    Raw input row that could not be converted into a typed record.

    Attributes:
        domain (str): Best-effort domain taken from the raw row ("" if absent).
        raw (dict[str, Any]): JSON-safe copy of the raw row.
        parsing_errors (list[str]): Validation messages; never empty.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    domain: str
    raw: JsonDict
    parsing_errors: list[str]


# ============================================================================
# Snapshots and intervals
# ============================================================================


class UserSnapshot(BaseModel):
    """
    Current state of a user taken from the live user table.

    Attributes:
        domain (str): Wiki database name.
        user_id (int | None): User id; invalid ids get a negative pseudo id downstream.
        user_text (str): Current user name.
        registration_timestamp (str | None): Registration time, or the oldest known
            activity when the registration column is empty.
        user_groups (list[str]): Current groups.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    domain: str
    user_id: int | None = None
    user_text: str
    registration_timestamp: str | None = None
    user_groups: list[str] = Field(default_factory=list)

    @field_validator("domain", mode="before")
    @classmethod
    def _normalize_domain(cls, v: Any) -> str:
        return normalize_domain(v)

    @field_validator("registration_timestamp", mode="before")
    @classmethod
    def _normalize_registration(cls, v: Any) -> Any:
        return _optional_timestamp(v)

    @property
    def entity_id(self) -> int | None:
        return self.user_id

    @property
    def identity_key(self) -> UserKey:
        return (self.domain, self.user_text)

    @property
    def start_timestamp(self) -> str | None:
        return self.registration_timestamp


class PageSnapshot(BaseModel):
    """Current state of a page taken from the live page table."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    domain: str
    page_id: int | None = None
    title: str
    namespace: int
    namespace_is_content: bool = False
    is_redirect: bool = False
    creation_timestamp: str | None = None

    @field_validator("domain", mode="before")
    @classmethod
    def _normalize_domain(cls, v: Any) -> str:
        return normalize_domain(v)

    @field_validator("creation_timestamp", mode="before")
    @classmethod
    def _normalize_creation(cls, v: Any) -> Any:
        return _optional_timestamp(v)

    @property
    def entity_id(self) -> int | None:
        return self.page_id

    @property
    def identity_key(self) -> PageKey:
        return (self.domain, self.title, self.namespace)

    @property
    def start_timestamp(self) -> str | None:
        return self.creation_timestamp


class _Interval(BaseModel):
    """Fields shared by reconstructed intervals; guards start <= end."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    domain: str
    start_timestamp: str | None = None
    end_timestamp: str | None = None
    caused_by_event_type: str
    caused_by_user_id: int | None = None

    @model_validator(mode="after")
    def _check_bounds(self) -> _Interval:
        s, e = self.start_timestamp, self.end_timestamp
        if s is not None and e is not None and e < s:
            raise SchemaError(f"interval end {e} is before start {s}")
        return self

    @property
    def entity_id(self) -> int:  # pragma: no cover - overridden
        raise NotImplementedError

    @property
    def state_key(self) -> StateKey:
        return StateKey(
            PartitionKey(self.domain, self.entity_id, ""),
            self.start_timestamp,
            self.end_timestamp,
        )


class UserState(_Interval):
    """
    One interval of a user's reconstructed history.

    ``*_historical`` fields hold the value during the interval; the plain fields hold
    the user's latest known value and are identical across all its intervals.
    """

    user_id: int
    user_text_historical: str
    user_text: str
    user_groups_historical: list[str] = Field(default_factory=list)
    user_groups: list[str] = Field(default_factory=list)
    user_blocks_historical: list[str] = Field(default_factory=list)
    block_expiration_historical: str | None = None
    registration_timestamp: str | None = None

    @property
    def entity_id(self) -> int:
        return self.user_id


class PageState(_Interval):
    """One interval of a page's reconstructed history."""

    page_id: int
    title_historical: str
    title: str
    namespace_historical: int
    namespace: int
    namespace_is_content_historical: bool = False
    namespace_is_content: bool = False
    is_redirect: bool = False
    is_deleted: bool = False
    creation_timestamp: str | None = None

    @property
    def entity_id(self) -> int:
        return self.page_id


class ErrorRow(BaseModel):
    """
    Diagnostics row: (domain, category, data).

    Attributes:
        category (str): One of "parsing", "matching", "empty-registration".
        data (str): Canonical JSON text of the offending record.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    domain: str
    category: str
    data: str

    @field_validator("category", mode="before")
    @classmethod
    def _check_category(cls, v: Any) -> str:
        return error_category_from_value(str(v)).value


# ============================================================================
# Parsing raw rows
# ============================================================================

USER_EVENT_VARIANTS: dict[str, type[UserEventBase]] = {
    UserEventType.CREATE.value: UserCreate,
    UserEventType.RENAME.value: UserRename,
    UserEventType.ALTERGROUPS.value: UserAlterGroups,
    UserEventType.ALTERBLOCKS.value: UserAlterBlocks,
}

PAGE_EVENT_VARIANTS: dict[str, type[PageEventBase]] = {
    PageEventType.CREATE.value: PageCreate,
    PageEventType.MOVE.value: PageMove,
    PageEventType.DELETE.value: PageDelete,
}


def _format_errors(exc: ValidationError) -> list[str]:
    out: list[str] = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "<row>"
        out.append(f"{loc}: {err.get('msg', 'invalid')}")
    return out


def _unparsed(row: Mapping[str, Any], errors: list[str]) -> UnparsedEvent:
    return UnparsedEvent(
        domain=str(row.get("domain") or ""),
        raw=to_jsonable(dict(row)),
        parsing_errors=errors,
    )


def _parse_with(model: type[BaseModel], row: Mapping[str, Any]) -> Any:
    # Wide input frames carry every variant's columns; keep the ones this model knows.
    fields = model.model_fields
    payload = {k: v for k, v in row.items() if k in fields and v is not None}
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        return _unparsed(row, _format_errors(exc))


def _parse_event(variants: Mapping[str, type[BaseModel]], row: Mapping[str, Any]) -> Any:
    event_type = row.get("event_type")
    model = variants.get(event_type) if isinstance(event_type, str) else None
    if model is None:
        return _unparsed(
            row, [f"event_type: unknown {event_type!r} (allowed: {sorted(variants)})"]
        )
    return _parse_with(model, row)


def parse_user_event(row: Mapping[str, Any]) -> UserEvent | UnparsedEvent:
    """
    Convert a raw user log row into a typed user event.

    Returns:
        UserEvent | UnparsedEvent: The event variant selected by ``event_type``, or an
        UnparsedEvent describing why the row could not be converted. Never raises.
    """
    return _parse_event(USER_EVENT_VARIANTS, row)


def parse_page_event(row: Mapping[str, Any]) -> PageEvent | UnparsedEvent:
    """Convert a raw page log row into a typed page event (see parse_user_event)."""
    return _parse_event(PAGE_EVENT_VARIANTS, row)


def parse_user_snapshot(row: Mapping[str, Any]) -> UserSnapshot | UnparsedEvent:
    """Convert a raw user table row into a UserSnapshot, or an UnparsedEvent."""
    return _parse_with(UserSnapshot, row)


def parse_page_snapshot(row: Mapping[str, Any]) -> PageSnapshot | UnparsedEvent:
    """Convert a raw page table row into a PageSnapshot, or an UnparsedEvent."""
    return _parse_with(PageSnapshot, row)
