"""
History builder: turn one entity's timeline into consecutive state intervals.

State machine per entity
- Seed: the first interval starts at the entity's registration/creation time, the
  earliest of the snapshot's start and the first creation event. Identity and
  attributes of the seed come from the oldest evidence available (first event,
  else snapshot).
- Advance: events are applied in EventKey order. An event after the current
  interval start closes that interval at the event timestamp and opens the next
  one; an event at or before the start updates the current interval in place so
  that no zero-length interval is emitted. Creation events never open an interval.
- Close: the last interval stays open (end None) unless a terminal event closes
  it. Events after a terminal event are reported as unmatched.

Entities without a determinable start are built anyway (start None acts as -inf)
and returned under ``incomplete``; they never reach the output table.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, ClassVar, Generic, TypeVar

from wikihist.core.grammar import EntityKind
from wikihist.core.keys import PartitionKey
from wikihist.core.schema import EntityEventBase, PageState, UserState

__all__ = [
    "EntityTimeline",
    "BuildResult",
    "HistoryBuilder",
    "event_type_of",
]

E = TypeVar("E", bound=EntityEventBase)
S = TypeVar("S")
St = TypeVar("St", UserState, PageState)


@dataclass(frozen=True)
class EntityTimeline(Generic[E, S]):
    """
    Everything known about one entity inside a shard.

    Attributes:
        partition_key: Entity-level key (year "").
        events: Attributed events sorted by EventKey.
        snapshot: Snapshot state of the entity, if any.
    """

    partition_key: PartitionKey
    events: Sequence[E] = ()
    snapshot: S | None = None


@dataclass
class BuildResult(Generic[St, E]):
    states: list[St] = field(default_factory=list)
    unmatched: list[E] = field(default_factory=list)
    incomplete: list[St] = field(default_factory=list)

    def extend(self, other: BuildResult[St, E]) -> None:
        self.states.extend(other.states)
        self.unmatched.extend(other.unmatched)
        self.incomplete.extend(other.incomplete)


def event_type_of(event: EntityEventBase) -> str:
    return str(getattr(event, "event_type"))


class HistoryBuilder(ABC, Generic[E, S, St]):
    """
    Seed / Advance / Close driver shared by the user and page builders.

    Subclasses provide the entity specific pieces: how the seed interval looks,
    what each event variant does to the attributes, and how the current fields
    are filled once the whole timeline is known.
    """

    kind: ClassVar[EntityKind]

    def registration(self, snapshot: S | None, events: Sequence[E]) -> str | None:
        """Earliest of the snapshot start and the first creation event, or None."""
        candidates: list[str] = []
        snap_start = getattr(snapshot, "start_timestamp", None)
        if snap_start:
            candidates.append(snap_start)
        first_create = next((e for e in events if e.is_creation), None)
        if first_create is not None:
            candidates.append(first_create.timestamp)
        return min(candidates) if candidates else None

    @abstractmethod
    def seed(
        self, key: PartitionKey, start: str | None, snapshot: S | None, events: Sequence[E]
    ) -> St:
        """Initial interval, open ended, starting at ``start``."""

    @abstractmethod
    def apply(self, state: St, event: E) -> St:
        """Attributes after ``event``; start, end and caused-by fields are left alone."""

    @abstractmethod
    def finalize(
        self,
        states: list[St],
        snapshot: S | None,
        *,
        start: str | None,
        terminated: bool,
    ) -> list[St]:
        """Fill the current (non-historical) fields of every interval."""

    def build(self, timeline: EntityTimeline[E, S]) -> BuildResult[St, E]:
        """
        Reconstruct the intervals of one entity.

        Returns:
            BuildResult: Output states, unmatched events and incomplete states.
        """
        events = timeline.events
        start = self.registration(timeline.snapshot, events)
        current: St | None = self.seed(timeline.partition_key, start, timeline.snapshot, events)
        closed: list[St] = []
        result: BuildResult[St, E] = BuildResult()

        for event in events:
            if current is None:
                result.unmatched.append(event)
                continue
            updated = self.apply(current, event)
            ts = event.timestamp
            cur_start = current.start_timestamp
            in_place = event.is_creation or (cur_start is not None and ts <= cur_start)

            if event.is_terminal:
                end = ts if cur_start is None or ts > cur_start else cur_start
                closed.append(updated.model_copy(update={"end_timestamp": end}))
                current = None
            elif in_place:
                update: dict[str, Any] = {}
                if event.is_creation:
                    update = {
                        "caused_by_event_type": event_type_of(event),
                        "caused_by_user_id": event.caused_by_user_id,
                    }
                current = updated.model_copy(update=update) if update else updated
            else:
                closed.append(current.model_copy(update={"end_timestamp": ts}))
                current = updated.model_copy(
                    update={
                        "start_timestamp": ts,
                        "end_timestamp": None,
                        "caused_by_event_type": event_type_of(event),
                        "caused_by_user_id": event.caused_by_user_id,
                    }
                )

        terminated = current is None
        if current is not None:
            closed.append(current)
        states = self.finalize(closed, timeline.snapshot, start=start, terminated=terminated)
        if start is None:
            result.incomplete = states
        else:
            result.states = states
        return result
