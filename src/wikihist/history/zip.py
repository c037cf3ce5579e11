"""
One-pass sort-merge of two independently sorted sequences.

``left_outer_zip`` is the merge primitive of the engine: both inputs are
``(key, value)`` sequences sorted ascending under orders that ``key_comparator``
agrees with. Every left item is yielded exactly once, joined with the right item
whose key compares equal, or with None. The right side is consumed lazily and
never rewound; only one pending right item is buffered. Work is
O(len(left) + len(right)) comparator calls.

Several consecutive left items may join the same right item (the right cursor
only moves when the left key is bigger than the right head).
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from typing import TypeVar

from wikihist.core.errors import MergeOrderError

__all__ = ["left_outer_zip"]

LK = TypeVar("LK")
LV = TypeVar("LV")
RK = TypeVar("RK")
RV = TypeVar("RV")
Z = TypeVar("Z")

_EXHAUSTED = object()


def left_outer_zip(
    key_comparator: Callable[[LK, RK], int],
    join: Callable[[tuple[LK, LV], tuple[RK, RV] | None], Z],
    left: Iterable[tuple[LK, LV]],
    right: Iterable[tuple[RK, RV]],
) -> Iterator[Z]:
    """
    Zip two sorted sequences, yielding every left item joined with a matching right item or None.

    Args:
        key_comparator: Three-way comparison of a left key with a right key
            (negative, zero, positive).
        join: Builds the output from a left item and the matching right item (or None).
        left: Sorted ``(key, value)`` items; all of them are yielded.
        right: Sorted ``(key, value)`` items; unmatched ones are skipped.

    Yields:
        Z: One joined result per left item, in left order.

    Raises:
        MergeOrderError: If the comparator is incoherent or the left input is seen
            going backwards against the current right head. Both mean an upstream
            sort/partition bug; the merge never guesses.

    Examples:
        >>> cmp = lambda a, b: (a > b) - (a < b)
        >>> list(left_outer_zip(cmp, lambda l, r: (l[1], r and r[1]),
        ...                     [(1, "a"), (2, "b"), (2, "c"), (4, "d")],
        ...                     [(2, "X"), (3, "Y"), (4, "Z")]))
        [('a', None), ('b', 'X'), ('c', 'X'), ('d', 'Z')]
    """
    right_it = iter(right)
    head: object = next(right_it, _EXHAUSTED)
    # Comparison of the previous left item against the current head. Left keys are
    # non-decreasing, so against an unchanged head the comparison may only grow.
    last_comparison: int | None = None

    for left_item in left:
        if head is _EXHAUSTED:
            yield join(left_item, None)
            continue

        comparison = key_comparator(left_item[0], head[0])  # type: ignore[index]
        if last_comparison is not None and comparison < last_comparison:
            raise MergeOrderError(
                f"left input is not sorted: key {left_item[0]!r} is smaller than a "
                f"previous left key relative to right key {head[0]!r}"  # type: ignore[index]
            )

        while comparison > 0:
            head = next(right_it, _EXHAUSTED)
            last_comparison = None
            if head is _EXHAUSTED:
                break
            comparison = key_comparator(left_item[0], head[0])  # type: ignore[index]

        if head is _EXHAUSTED:
            yield join(left_item, None)
            continue

        last_comparison = comparison
        if comparison == 0:
            yield join(left_item, head)  # type: ignore[arg-type]
        elif comparison < 0:
            yield join(left_item, None)
        else:  # pragma: no cover - unreachable with a coherent comparator
            raise MergeOrderError("incoherent key comparator state (left bigger than right)")
