"""
End-to-end reconstruction of one entity kind.

Flow
1. Split parsed inputs: unparsed rows and events carrying parsing errors become
   ``parsing`` diagnostics.
2. Assign snapshot ids (pseudo ids for invalid ones), build the identity graph and
   attribute every valid event to an entity; leftovers become ``matching``
   diagnostics.
3. Key events by EventKey and snapshots by StateKey, repartition both with the same
   partitioner and sort each shard.
4. Per shard: group events by entity, zip the entity list with the event groups and
   then with the snapshots (left outer, one pass each), build every timeline.
5. Merge shard outputs and counters; sort states by StateKey and diagnostics by
   (domain, category, data) so identical inputs give identical outputs.

Invariant violations (unsorted merge input, identity cycles) propagate and abort
the whole run.
"""

from __future__ import annotations

import itertools
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

import structlog
from pydantic import BaseModel

from wikihist.core.constants import MAX_WORKERS, NUM_PARTITIONS
from wikihist.core.grammar import ErrorCategory
from wikihist.core.hashing import id_or_hash_negative, json_dumps_canonical
from wikihist.core.keys import (
    EventKey,
    PartitionKey,
    StateKey,
    compare_entities,
    year_of,
)
from wikihist.core.schema import EntityEventBase, ErrorRow, PageState, UnparsedEvent, UserState

from .builder import BuildResult, EntityTimeline, HistoryBuilder
from .identity import IdentityGraph, attribute_events
from .partitioning import PartitionKeyPartitioner, map_partitions, repartition_and_sort, shard_sizes
from .stats import StatsAccumulator, metric_name
from .zip import left_outer_zip

__all__ = ["Reconstruction", "reconstruct", "error_row"]

logger = structlog.get_logger(__name__)

St = TypeVar("St", UserState, PageState)


@dataclass
class Reconstruction(Generic[St]):
    """Output of one run: states sorted by StateKey and diagnostics rows."""

    states: list[St] = field(default_factory=list)
    errors: list[ErrorRow] = field(default_factory=list)


def error_row(category: ErrorCategory, record: BaseModel) -> ErrorRow:
    """Diagnostics row holding the canonical JSON of ``record``."""
    return ErrorRow(
        domain=getattr(record, "domain", ""),
        category=category.value,
        data=json_dumps_canonical(record.model_dump(mode="json")),
    )


def _event_pair(entity_id: int, event: EntityEventBase) -> tuple[EventKey, EntityEventBase]:
    pk = PartitionKey(event.domain, entity_id, year_of(event.timestamp, ""))
    return EventKey(pk, event.timestamp, event.sorting_id), event


def _snapshot_pair(entity_id: int, snapshot: Any) -> tuple[StateKey, Any]:
    key = StateKey(PartitionKey(snapshot.domain, entity_id, ""), snapshot.start_timestamp, None)
    return key, snapshot


def _group_by_entity(shard: list[tuple[Any, Any]]) -> list[tuple[PartitionKey, list[Any]]]:
    return [
        (PartitionKey(domain, entity_id, ""), [v for _, v in items])
        for (domain, entity_id), items in itertools.groupby(
            shard, key=lambda kv: kv[0].partition_key.entity()
        )
    ]


def _build_shard(
    builder: HistoryBuilder[Any, Any, St],
    events: list[tuple[EventKey, Any]],
    snapshots: list[tuple[StateKey, Any]],
) -> BuildResult[St, Any]:
    event_groups = _group_by_entity(events)
    # Duplicate snapshot rows for one entity: the first (earliest start) wins.
    snapshot_heads = [(pk, group[0]) for pk, group in _group_by_entity(snapshots)]
    entities = sorted({pk for pk, _ in event_groups} | {pk for pk, _ in snapshot_heads})

    with_events = left_outer_zip(
        compare_entities,
        lambda left, right: (left[0], right[1] if right is not None else []),
        ((pk, pk) for pk in entities),
        event_groups,
    )
    timelines = left_outer_zip(
        compare_entities,
        lambda left, right: EntityTimeline(
            left[0], left[1], right[1] if right is not None else None
        ),
        with_events,
        snapshot_heads,
    )
    out: BuildResult[St, Any] = BuildResult()
    for timeline in timelines:
        out.extend(builder.build(timeline))
    return out


def _count(stats: StatsAccumulator, kind: str, records: Iterable[Any], metric: str) -> None:
    for record in records:
        stats.add(metric_name(getattr(record, "domain", "") or "unknown", kind, metric))


def reconstruct(
    builder: HistoryBuilder[Any, Any, St],
    events: Iterable[EntityEventBase | UnparsedEvent],
    snapshots: Iterable[Any],
    *,
    num_partitions: int = NUM_PARTITIONS,
    max_workers: int = MAX_WORKERS,
    stats: StatsAccumulator | None = None,
) -> Reconstruction[St]:
    """
    Reconstruct the history of every entity found in ``events`` and ``snapshots``.

    Args:
        builder: UserHistoryBuilder or PageHistoryBuilder.
        events: Parsed events of the builder's kind (UnparsedEvent allowed).
        snapshots: Parsed snapshots of the builder's kind (UnparsedEvent allowed).
        num_partitions: Number of shards.
        max_workers: Shard parallelism (1 = sequential).
        stats: Run accumulator; shard counters are merged into it at the end.

    Returns:
        Reconstruction: States sorted by StateKey plus diagnostics rows.

    Raises:
        ValueError: If num_partitions <= 0.
        InvariantViolation: On unsorted merge input or an identity cycle.
    """
    kind = builder.kind.value
    run_stats = stats if stats is not None else StatsAccumulator()
    partitioner = PartitionKeyPartitioner(num_partitions)
    errors: list[ErrorRow] = []

    valid_events: list[EntityEventBase] = []
    for event in events:
        if isinstance(event, UnparsedEvent) or event.parsing_errors:
            errors.append(error_row(ErrorCategory.PARSING, event))
            _count(run_stats, kind, [event], "events_parsing.error")
        else:
            valid_events.append(event)
    _count(run_stats, kind, valid_events, "events_parsing.ok")

    keyed_snapshots: list[tuple[int, Any]] = []
    for snapshot in snapshots:
        if isinstance(snapshot, UnparsedEvent):
            errors.append(error_row(ErrorCategory.PARSING, snapshot))
            _count(run_stats, kind, [snapshot], "snapshots_parsing.error")
            continue
        entity_id = id_or_hash_negative(snapshot.entity_id, snapshot.model_dump(mode="json"))
        keyed_snapshots.append((entity_id, snapshot))

    log = logger.bind(entity=kind)
    log.info(
        "reconstruction_started",
        events=len(valid_events),
        snapshots=len(keyed_snapshots),
        partitions=num_partitions,
        workers=max_workers,
    )

    graph = IdentityGraph.from_events(valid_events)
    attribution = attribute_events(valid_events, keyed_snapshots, graph)
    for event in attribution.unmatched:
        errors.append(error_row(ErrorCategory.MATCHING, event))
    _count(run_stats, kind, attribution.unmatched, "events_matching.error")
    _count(run_stats, kind, (e for _, e in attribution.matched), "events_matching.ok")
    log.debug("identity_graph_built", edges=graph.edge_count, unmatched=len(attribution.unmatched))

    event_shards = repartition_and_sort(
        (_event_pair(i, e) for i, e in attribution.matched), partitioner
    )
    snapshot_shards = repartition_and_sort(
        (_snapshot_pair(i, s) for i, s in keyed_snapshots), partitioner
    )
    log.debug(
        "partitions_sized",
        events=shard_sizes(event_shards),
        snapshots=shard_sizes(snapshot_shards),
    )

    def run_shard(index: int) -> tuple[BuildResult[St, Any], StatsAccumulator]:
        shard_stats = StatsAccumulator()
        result = _build_shard(builder, event_shards[index], snapshot_shards[index])
        _count(shard_stats, kind, result.states, "states.ok")
        _count(shard_stats, kind, result.incomplete, "states.empty_registration")
        _count(shard_stats, kind, result.unmatched, "events_matching.after_terminal")
        return result, shard_stats

    outputs = map_partitions(run_shard, num_partitions, max_workers=max_workers)

    states: list[St] = []
    for result, shard_stats in outputs:
        run_stats.merge(shard_stats)
        states.extend(result.states)
        errors.extend(error_row(ErrorCategory.MATCHING, e) for e in result.unmatched)
        errors.extend(error_row(ErrorCategory.EMPTY_REGISTRATION, s) for s in result.incomplete)

    states.sort(key=lambda s: s.state_key.sort_key())
    errors.sort(key=lambda r: (r.domain, r.category, r.data))
    log.info("reconstruction_finished", states=len(states), errors=len(errors))
    return Reconstruction(states=states, errors=errors)
