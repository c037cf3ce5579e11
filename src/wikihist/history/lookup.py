"""
Point-in-time lookup: pair events with the interval valid when they happened.

Both sides are keyed per year bucket so that the merge groups stay small for
entities with long histories. Each interval is exploded into one StateKey per
year it overlaps; each event gets the EventKey of its own year. A single left
outer zip with ``compare_event_and_state_keys`` then joins every event with the
interval satisfying ``start <= timestamp < end``, or None.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, TypeVar

from wikihist.core.keys import (
    EventKey,
    PartitionKey,
    StateKey,
    compare_event_and_state_keys,
    state_keys_by_year,
    year_of,
)
from wikihist.core.schema import EntityEventBase, PageState, UserState

from .zip import left_outer_zip

__all__ = ["state_at_events"]

E = TypeVar("E", bound=EntityEventBase)
St = TypeVar("St", UserState, PageState)


def state_at_events(
    events: Iterable[tuple[int, E]],
    states: Iterable[St],
    *,
    last_year: int | None = None,
) -> list[tuple[E, St | None]]:
    """
    Join attributed events with reconstructed intervals.

    Args:
        events: ``(entity_id, event)`` pairs, in any order.
        states: Reconstructed intervals, in any order.
        last_year: Newest year bucket generated for open intervals (defaults to
            the current year).

    Returns:
        list[tuple[E, St | None]]: One pair per event, sorted by EventKey.
    """
    left: list[tuple[EventKey, E]] = sorted(
        (
            (
                EventKey(
                    PartitionKey(ev.domain, entity_id, year_of(ev.timestamp, "-1")),
                    ev.timestamp,
                    ev.sorting_id,
                ),
                ev,
            )
            for entity_id, ev in events
        ),
        key=lambda kv: kv[0].sort_key(),
    )
    right: list[tuple[StateKey, Any]] = sorted(
        (
            (key, state)
            for state in states
            for key in state_keys_by_year(
                state.domain,
                state.entity_id,
                state.start_timestamp,
                state.end_timestamp,
                last_year=last_year,
            )
        ),
        key=lambda kv: kv[0].sort_key(),
    )
    return list(
        left_outer_zip(
            compare_event_and_state_keys,
            lambda l, r: (l[1], r[1] if r is not None else None),
            left,
            right,
        )
    )
