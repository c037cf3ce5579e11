from __future__ import annotations

import pytest
from hypothesis import given
from hypothesis import strategies as st

from wikihist.core.errors import InvariantViolation, MergeOrderError
from wikihist.history.zip import left_outer_zip


def _cmp(a: int, b: int) -> int:
    return (a > b) - (a < b)


def _pair(left, right):
    return left[1], (right[1] if right is not None else None)


class CountingComparator:
    def __init__(self) -> None:
        self.calls = 0

    def __call__(self, a: int, b: int) -> int:
        self.calls += 1
        return _cmp(a, b)


def test_left_items_are_joined_with_equal_right_items() -> None:
    left = [(1, "a"), (2, "b"), (2, "c"), (4, "d")]
    right = [(2, "X"), (3, "Y"), (4, "Z")]
    assert list(left_outer_zip(_cmp, _pair, left, right)) == [
        ("a", None),
        ("b", "X"),
        ("c", "X"),
        ("d", "Z"),
    ]


@pytest.mark.parametrize(
    ("left", "right", "expected"),
    [
        ([], [(1, "X")], []),
        ([(1, "a"), (2, "b")], [], [("a", None), ("b", None)]),
        ([(1, "a"), (2, "b")], [(10, "X"), (11, "Y")], [("a", None), ("b", None)]),
        ([(10, "a"), (11, "b")], [(1, "X"), (2, "Y")], [("a", None), ("b", None)]),
    ],
)
def test_empty_and_disjoint_inputs(left, right, expected) -> None:
    assert list(left_outer_zip(_cmp, _pair, left, right)) == expected


def test_right_side_is_consumed_lazily() -> None:
    consumed: list[int] = []

    def right():
        for k in (1, 2, 3, 4, 5):
            consumed.append(k)
            yield k, str(k)

    out = left_outer_zip(_cmp, _pair, [(2, "a")], right())
    assert next(out) == ("a", "2")
    assert consumed == [1, 2]


def test_unsorted_left_is_a_fatal_merge_error() -> None:
    with pytest.raises(MergeOrderError):
        list(left_outer_zip(_cmp, _pair, [(2, "a"), (1, "b")], [(2, "X")]))
    assert issubclass(MergeOrderError, InvariantViolation)


_sorted_ints = st.lists(st.integers(min_value=0, max_value=30), max_size=40).map(sorted)


@given(_sorted_ints, _sorted_ints.map(lambda xs: sorted(set(xs))))
def test_every_left_item_once_matches_equal_and_linear_work(left_keys, right_keys) -> None:
    left = [(k, i) for i, k in enumerate(left_keys)]
    right = [(k, f"r{k}") for k in right_keys]
    cmp = CountingComparator()

    out = list(left_outer_zip(cmp, lambda l, r: (l, r), left, right))

    assert [l for l, _ in out] == left
    for (lk, _), r in out:
        if lk in right_keys:
            assert r == (lk, f"r{lk}")
        else:
            assert r is None
    assert cmp.calls <= len(left) + len(right)
