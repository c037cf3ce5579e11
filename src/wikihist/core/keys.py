"""
Ordering key model for the history engine.

Every record flowing through the engine carries one of three comparable keys:

- PartitionKey (domain, entity_id, year): entity identity plus a year bucket.
- StateKey (partition_key, start, end): orders state intervals.
- EventKey (partition_key, timestamp, sorting_id): orders events; sorting_id
  (e.g. the log id) breaks ties between events sharing a timestamp.

All three define a strict total order through ``sort_key()``. Absent optional
fields use sentinel rules so that partially known records still sort
deterministically:

- an absent start timestamp sorts before every defined start (-inf),
- an absent end timestamp sorts after every defined end (+inf),
- an absent event timestamp or sorting id sorts first.

Partitioning only ever looks at ``(domain, entity_id)``; the year bucket exists so
that per-year groups stay small when a single entity has a very long history.

Examples:
    >>> from wikihist.core.keys import PartitionKey, StateKey
    >>> pk = PartitionKey("enwiki", 42, "2001")
    >>> StateKey(pk, None, "20010101000000") < StateKey(pk, "20000101000000", None)
    True
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime
from functools import total_ordering
from typing import Any, Protocol

from .constants import FIRST_YEAR

__all__ = [
    "PartitionKey",
    "StateKey",
    "EventKey",
    "HasPartitionKey",
    "compare_keys",
    "compare_entities",
    "compare_event_and_state_keys",
    "year_of",
    "years_covered",
    "state_keys_by_year",
]


def _low(value: Any) -> tuple[Any, ...]:
    # None sorts before any defined value.
    return (0,) if value is None else (1, value)


def _high(value: Any) -> tuple[Any, ...]:
    # None sorts after any defined value.
    return (1,) if value is None else (0, value)


class _Ordered:
    """Rich comparisons derived from ``sort_key()``; subclasses are frozen dataclasses."""

    __slots__ = ()

    def sort_key(self) -> tuple[Any, ...]:  # pragma: no cover - abstract
        raise NotImplementedError

    def __lt__(self, other: object) -> bool:
        if type(other) is not type(self):
            return NotImplemented
        return self.sort_key() < other.sort_key()  # type: ignore[attr-defined]


@total_ordering
@dataclass(frozen=True, slots=True)
class PartitionKey(_Ordered):
    """
    Entity identity plus year bucket.

    Attributes:
        domain (str): Wiki database name; histories of different wikis never mix.
        entity_id (int): User or page id. Valid ids are > 0; pseudo ids derived
            for malformed records are < 0 (see hashing.id_or_hash_negative).
        year (str): Four-character year bucket, or "" for entity-level keys.
    """

    domain: str
    entity_id: int
    year: str = ""

    def sort_key(self) -> tuple[Any, ...]:
        return (self.domain, self.entity_id, self.year)

    def entity(self) -> tuple[str, int]:
        """The identity portion used for partitioning: (domain, entity_id)."""
        return (self.domain, self.entity_id)

    def without_year(self) -> PartitionKey:
        return PartitionKey(self.domain, self.entity_id, "")

    @property
    def partition_key(self) -> PartitionKey:
        return self


@total_ordering
@dataclass(frozen=True, slots=True)
class StateKey(_Ordered):
    """Key of a state interval: partition key, then (start, end) with open boundaries."""

    partition_key: PartitionKey
    start_timestamp: str | None = None
    end_timestamp: str | None = None

    def sort_key(self) -> tuple[Any, ...]:
        return (
            self.partition_key.sort_key(),
            _low(self.start_timestamp),
            _high(self.end_timestamp),
        )


@total_ordering
@dataclass(frozen=True, slots=True)
class EventKey(_Ordered):
    """Key of an event: partition key, then (timestamp, sorting_id)."""

    partition_key: PartitionKey
    timestamp: str | None = None
    sorting_id: int | None = None

    def sort_key(self) -> tuple[Any, ...]:
        return (self.partition_key.sort_key(), _low(self.timestamp), _low(self.sorting_id))


class HasPartitionKey(Protocol):
    """Anything routed by the partitioner."""

    @property
    def partition_key(self) -> PartitionKey: ...


def _cmp(a: Any, b: Any) -> int:
    return (a > b) - (a < b)


def compare_keys(a: _Ordered, b: _Ordered) -> int:
    """
    Three-way comparison of two keys of the same kind.

    Returns:
        int: -1, 0 or 1.
    """
    return _cmp(a.sort_key(), b.sort_key())


def compare_entities(a: HasPartitionKey, b: HasPartitionKey) -> int:
    """Three-way comparison on (domain, entity_id) only, ignoring year and time."""
    return _cmp(a.partition_key.entity(), b.partition_key.entity())


def compare_event_and_state_keys(event_key: EventKey, state_key: StateKey) -> int:
    """
    Compare an event key with a state key.

    Partition keys are compared first. Within one partition the event matches (0)
    when ``start <= timestamp < end``, is smaller (-1) when it happens before the
    interval starts and bigger (1) otherwise. An absent start is -inf, an absent end
    +inf and an absent event timestamp is before everything.

    Examples:
        >>> pk = PartitionKey("enwiki", 1, "2001")
        >>> compare_event_and_state_keys(
        ...     EventKey(pk, "20010301000000"), StateKey(pk, "20010101000000", None))
        0
    """
    partition_comp = compare_keys(event_key.partition_key, state_key.partition_key)
    if partition_comp != 0:
        return partition_comp
    ts = event_key.timestamp
    start, end = state_key.start_timestamp, state_key.end_timestamp
    if start is not None and (ts is None or ts < start):
        return -1
    if end is not None and ts is not None and ts >= end:
        return 1
    return 0


def year_of(timestamp: str | None, default: str) -> str:
    """
    Extract the year part of a YYYYMMDDHHMMSS timestamp.

    Returns:
        str: The first four characters, or ``default`` for missing/short values.

    Examples:
        >>> year_of("20010115000000", "-1")
        '2001'
        >>> year_of(None, "-1")
        '-1'
    """
    if timestamp is None or len(timestamp) < 4:
        return default
    return timestamp[:4]


def years_covered(
    start_timestamp: str | None,
    end_timestamp: str | None,
    *,
    first_year: int = FIRST_YEAR,
    last_year: int | None = None,
) -> list[str]:
    """
    Year buckets overlapped by an interval, bounded to [first_year, last_year].

    Args:
        start_timestamp: Interval start; None means since the beginning.
        end_timestamp: Interval end; None means still current.
        first_year: Oldest bucket generated.
        last_year: Newest bucket generated (defaults to the current UTC year).

    Examples:
        >>> years_covered("20010601000000", "20030101000000", last_year=2005)
        ['2001', '2002', '2003']
        >>> years_covered(None, "20000101000000", last_year=2005)
        ['1999', '2000']
    """
    top = datetime.now(UTC).year if last_year is None else last_year
    lo = year_of(start_timestamp, "-1")
    hi = year_of(end_timestamp, "9")
    return [str(y) for y in range(first_year, top + 1) if lo <= str(y) <= hi]


def state_keys_by_year(
    domain: str,
    entity_id: int,
    start_timestamp: str | None,
    end_timestamp: str | None,
    *,
    years: Iterable[str] | None = None,
    last_year: int | None = None,
) -> list[StateKey]:
    """
    Explode one interval into one StateKey per covered year bucket.

    Used when joining events to reconstructed intervals: an event keyed on its own
    year meets every interval overlapping that year inside the same partition key.
    """
    buckets = years if years is not None else years_covered(
        start_timestamp, end_timestamp, last_year=last_year
    )
    return [
        StateKey(PartitionKey(domain, entity_id, y), start_timestamp, end_timestamp)
        for y in buckets
    ]
