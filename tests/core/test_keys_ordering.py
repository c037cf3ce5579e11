from __future__ import annotations

import pytest
from hypothesis import given
from hypothesis import strategies as st

from wikihist.core.keys import (
    EventKey,
    PartitionKey,
    StateKey,
    compare_event_and_state_keys,
    compare_keys,
    state_keys_by_year,
    year_of,
    years_covered,
)

_ts = st.none() | st.sampled_from(
    ["20010101000000", "20010101000001", "20050615120000", "20100101000000"]
)
_pk = st.builds(
    PartitionKey,
    st.sampled_from(["enwiki", "frwiki"]),
    st.integers(min_value=-3, max_value=3),
    st.sampled_from(["", "2001", "2005"]),
)
_state_keys = st.builds(StateKey, _pk, _ts, _ts)
_event_keys = st.builds(EventKey, _pk, _ts, st.none() | st.integers(min_value=0, max_value=3))


@pytest.mark.parametrize("keys", [_state_keys, _event_keys, _pk])
def test_comparator_is_a_total_order(keys) -> None:
    @given(keys, keys, keys)
    def check(a, b, c) -> None:
        # antisymmetric
        assert compare_keys(a, b) == -compare_keys(b, a)
        # equal exactly when the fields are equal
        assert (compare_keys(a, b) == 0) == (a == b)
        # transitive
        if compare_keys(a, b) <= 0 and compare_keys(b, c) <= 0:
            assert compare_keys(a, c) <= 0
        # rich comparisons agree with compare_keys
        assert (a < b) == (compare_keys(a, b) < 0)

    check()


def test_absent_start_sorts_first_and_absent_end_sorts_last() -> None:
    pk = PartitionKey("enwiki", 1)
    open_start = StateKey(pk, None, "20010101000000")
    defined = StateKey(pk, "19990101000000", "20010101000000")
    open_end = StateKey(pk, "19990101000000", None)
    assert sorted([open_end, defined, open_start]) == [open_start, defined, open_end]


def test_partition_key_orders_domain_then_id_then_year() -> None:
    keys = [
        PartitionKey("frwiki", 1, "2001"),
        PartitionKey("enwiki", 2, ""),
        PartitionKey("enwiki", 1, "2002"),
        PartitionKey("enwiki", 1, "2001"),
    ]
    assert sorted(keys) == [keys[3], keys[2], keys[1], keys[0]]


def test_event_tie_break_on_sorting_id() -> None:
    pk = PartitionKey("enwiki", 1)
    a = EventKey(pk, "20010101000000", 5)
    b = EventKey(pk, "20010101000000", 7)
    none = EventKey(pk, "20010101000000", None)
    assert sorted([b, a, none]) == [none, a, b]


@pytest.mark.parametrize(
    ("ts", "expected"),
    [
        ("20001231235959", -1),
        ("20010101000000", 0),
        ("20011231235959", 0),
        ("20020101000000", 1),
        (None, -1),
    ],
)
def test_event_matches_state_on_half_open_interval(ts: str | None, expected: int) -> None:
    pk = PartitionKey("enwiki", 1, "2001")
    state = StateKey(pk, "20010101000000", "20020101000000")
    assert compare_event_and_state_keys(EventKey(pk, ts), state) == expected


def test_event_and_state_open_bounds() -> None:
    pk = PartitionKey("enwiki", 1, "2001")
    assert compare_event_and_state_keys(EventKey(pk, "20010101000000"), StateKey(pk)) == 0
    assert compare_event_and_state_keys(EventKey(pk, None), StateKey(pk)) == 0
    open_end = StateKey(pk, "20010101000000", None)
    assert compare_event_and_state_keys(EventKey(pk, "20300101000000"), open_end) == 0
    assert compare_event_and_state_keys(EventKey(pk, "20000101000000"), open_end) == -1
    assert compare_event_and_state_keys(EventKey(pk, None), open_end) == -1
    open_start = StateKey(pk, None, "20020101000000")
    assert compare_event_and_state_keys(EventKey(pk, "19990101000000"), open_start) == 0
    assert compare_event_and_state_keys(EventKey(pk, "20020101000000"), open_start) == 1


def test_event_and_state_in_different_partitions_compare_by_partition() -> None:
    event = EventKey(PartitionKey("enwiki", 1, "2001"), "20010601000000")
    state = StateKey(PartitionKey("enwiki", 2, "2001"), None, None)
    assert compare_event_and_state_keys(event, state) == -1


def test_years_helpers() -> None:
    assert year_of("20010101000000", "x") == "2001"
    assert year_of("", "x") == "x"
    assert years_covered("20010601000000", None, last_year=2003) == ["2001", "2002", "2003"]
    assert years_covered(None, None, first_year=2020, last_year=2021) == ["2020", "2021"]
    keys = state_keys_by_year("enwiki", 7, "20020101000000", "20030101000000", last_year=2010)
    assert [k.partition_key.year for k in keys] == ["2002", "2003"]
    assert all(k.start_timestamp == "20020101000000" for k in keys)
