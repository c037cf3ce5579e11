"""
Identity graph resolver.

Renames (users) and moves (pages) change an entity's natural key in the middle of
its history. Events are recorded under whatever key was valid when they happened,
and sometimes under a stale one. This module folds identity-changing events into a
forward-only graph and uses it to attribute every event to an entity lineage.

Model
- Edge ``from_key -> to_key`` effective at the event timestamp. Keys lead with the
  domain, so one graph safely holds several wikis.
- Lineage starts: creation events, and identity changes arriving at a key, mark
  the moment that key starts naming a new entity. A walk starting from a key only
  follows edges recorded after the most recent lineage start of that key, which
  keeps a reused name from being glued to the previous holder's lineage.
- Walks are iterative with a visited-set guard. Rename chains advance in time and
  are acyclic in valid data; a revisited key raises IdentityCycleError.

Unknown keys are not an error: they resolve to themselves and start a new lineage.
"""

from __future__ import annotations

from bisect import bisect_left, bisect_right, insort
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

import structlog

from wikihist.core.errors import IdentityCycleError
from wikihist.core.hashing import id_or_hash_negative
from wikihist.core.schema import EntityEventBase
from wikihist.core.typing import IdentityKey

__all__ = [
    "IdentityGraph",
    "Attribution",
    "attribute_events",
]

logger = structlog.get_logger(__name__)

E = TypeVar("E", bound=EntityEventBase)


class IdentityGraph:
    """
    Forward-only adjacency ``key -> [(effective_from, to_key), ...]`` plus lineage starts.

    Examples:
        >>> g = IdentityGraph()
        >>> g.add_edge(("x", "A"), ("x", "B"), "20010101000000")
        >>> g.add_edge(("x", "B"), ("x", "C"), "20020101000000")
        >>> g.resolve(("x", "A"), "20010601000000")
        ('x', 'B')
        >>> g.resolve_current(("x", "A"), "20010601000000")
        ('x', 'C')
    """

    def __init__(self) -> None:
        self._edges: dict[IdentityKey, list[tuple[str, IdentityKey]]] = {}
        self._starts: dict[IdentityKey, list[str]] = {}

    @classmethod
    def from_events(cls, events: Iterable[EntityEventBase]) -> IdentityGraph:
        """Build a graph from events, skipping events that carry parsing errors."""
        graph = cls()
        for event in events:
            if event.parsing_errors:
                continue
            if event.is_creation:
                graph.add_lineage_start(event.to_key, event.timestamp)
            elif event.is_identity_change:
                graph.add_edge(event.from_key, event.to_key, event.timestamp)
                graph.add_lineage_start(event.to_key, event.timestamp)
        return graph

    def add_edge(self, from_key: IdentityKey, to_key: IdentityKey, effective_from: str) -> None:
        if from_key == to_key:
            return
        insort(self._edges.setdefault(from_key, []), (effective_from, to_key))

    def add_lineage_start(self, key: IdentityKey, timestamp: str) -> None:
        insort(self._starts.setdefault(key, []), timestamp)

    @property
    def edge_count(self) -> int:
        return sum(len(v) for v in self._edges.values())

    def lineage_start(self, key: IdentityKey, at: str | None) -> str | None:
        """Most recent lineage start of ``key`` at or before ``at`` (latest overall if None)."""
        starts = self._starts.get(key)
        if not starts:
            return None
        if at is None:
            return starts[-1]
        i = bisect_right(starts, at)
        return starts[i - 1] if i else None

    def _next_edge(
        self, key: IdentityKey, since: str | None, until: str | None
    ) -> tuple[str, IdentityKey] | None:
        edges = self._edges.get(key)
        if not edges:
            return None
        i = 0 if since is None else bisect_left(edges, (since,))
        if i >= len(edges):
            return None
        ts, to_key = edges[i]
        if until is not None and ts > until:
            return None
        return ts, to_key

    def walk(
        self, key: IdentityKey, at: str | None = None, *, until: str | None = None
    ) -> list[IdentityKey]:
        """
        Follow the rename chain forward from ``key`` as observed at time ``at``.

        Args:
            key: Starting key.
            at: Observation time; selects the lineage start of ``key``.
            until: Only follow edges effective at or before this time (None = all).

        Returns:
            list[IdentityKey]: Visited keys in order, starting with ``key``.

        Raises:
            IdentityCycleError: If the chain revisits a key.
        """
        return self._walk(key, at, until)[0]

    def _walk(
        self, key: IdentityKey, at: str | None, until: str | None
    ) -> tuple[list[IdentityKey], str | None]:
        path = [key]
        visited = {key}
        since = self.lineage_start(key, at)
        current = key
        while True:
            step = self._next_edge(current, since, until)
            if step is None:
                return path, since
            since, current = step
            if current in visited:
                raise IdentityCycleError(
                    f"identity cycle detected: {' -> '.join(map(repr, path + [current]))}",
                    path=tuple(path + [current]),
                )
            visited.add(current)
            path.append(current)

    def resolve(self, key: IdentityKey, at: str) -> IdentityKey:
        """Key that the entity observed under ``key`` at time ``at`` held at that time."""
        return self.walk(key, at, until=at)[-1]

    def resolve_current(self, key: IdentityKey, at: str | None) -> IdentityKey:
        """Latest key of the lineage that ``key`` belonged to at time ``at``."""
        return self.walk(key, at)[-1]

    def resolve_lineage(self, key: IdentityKey, at: str | None) -> tuple[IdentityKey, str | None]:
        """
        Lineage that ``key`` belonged to at time ``at``.

        Returns:
            tuple: The lineage's latest key and the time it took that key. Two
            entities that end up on the same key at different times stay apart.
            Events recorded under a key before any of its lineage starts join
            the first lineage of that key.
        """
        path, arrived = self._walk(key, at, None)
        if arrived is None:
            starts = self._starts.get(path[-1])
            arrived = starts[0] if starts else None
        return path[-1], arrived


@dataclass
class Attribution(Generic[E]):
    """Events split into ``(entity_id, event)`` pairs and unattributable events."""

    matched: list[tuple[int, E]] = field(default_factory=list)
    unmatched: list[E] = field(default_factory=list)


def _event_order(event: EntityEventBase) -> tuple[Any, ...]:
    sid = event.sorting_id
    return (event.domain, event.timestamp, sid is not None, sid if sid is not None else 0)


def _valid_id(entity_id: int | None) -> bool:
    return entity_id is not None and entity_id > 0


def attribute_events(
    events: Sequence[E],
    snapshots: Iterable[tuple[int, Any]],
    graph: IdentityGraph,
) -> Attribution[E]:
    """
    Assign an entity id to every event.

    Events are grouped into lineages (latest key plus the time it was taken, see
    IdentityGraph.resolve_lineage). Precedence for an event without its own
    valid id:

    1. the entity whose snapshot holds the lineage's key, when no other lineage
       took that key later,
    2. the first event of the lineage carrying a valid id,
    3. a pseudo id derived from the lineage's first creation event.

    Events matching none of these are returned as unmatched.

    Args:
        events: Valid events (no parsing errors).
        snapshots: ``(entity_id, snapshot)`` pairs; each snapshot owns its current
            identity key.
        graph: Identity graph built from the same events.

    Raises:
        IdentityCycleError: Propagated from the graph walk.
    """
    ordered = sorted(events, key=_event_order)
    lineages = [graph.resolve_lineage(e.from_key, e.timestamp) for e in ordered]

    # A snapshot names the entity holding its key now: the lineage that took it last.
    holder: dict[IdentityKey, tuple[Any, ...]] = {}
    for key, arrived in lineages:
        rank = (arrived is not None, arrived or "")
        if key not in holder or rank > holder[key][0]:
            holder[key] = (rank, (key, arrived))
    lineage_owner: dict[tuple[IdentityKey, str | None], int] = {}
    for entity_id, snapshot in snapshots:
        held = holder.get(snapshot.identity_key)
        lineage = held[1] if held is not None else (snapshot.identity_key, None)
        lineage_owner.setdefault(lineage, entity_id)

    for event, lineage in zip(ordered, lineages, strict=True):
        if _valid_id(event.entity_id):
            lineage_owner.setdefault(lineage, event.entity_id)  # type: ignore[arg-type]
    for event, lineage in zip(ordered, lineages, strict=True):
        if event.is_creation and lineage not in lineage_owner:
            lineage_owner[lineage] = id_or_hash_negative(None, event.model_dump(mode="json"))

    out: Attribution[E] = Attribution()
    for event, lineage in zip(ordered, lineages, strict=True):
        if _valid_id(event.entity_id):
            out.matched.append((event.entity_id, event))  # type: ignore[arg-type]
        elif lineage in lineage_owner:
            out.matched.append((lineage_owner[lineage], event))
        else:
            out.unmatched.append(event)

    logger.debug(
        "events_attributed",
        matched=len(out.matched),
        unmatched=len(out.unmatched),
        lineages=len(lineage_owner),
    )
    return out
