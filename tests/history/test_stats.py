from __future__ import annotations

from wikihist.history.stats import StatsAccumulator, metric_name


def test_metric_names() -> None:
    assert metric_name("enwiki", "page", "states.ok") == "enwiki.page_history.states.ok"


def test_merge_is_commutative() -> None:
    a = StatsAccumulator({"x": 1})
    a.add("y", 2)
    b = StatsAccumulator()
    b.add("x")
    b.add("z", 5)

    left = StatsAccumulator.merged([a, b])
    right = StatsAccumulator.merged([b, a])

    assert left.as_dict() == right.as_dict() == {"x": 2, "y": 2, "z": 5}
    assert left.get("missing") == 0
    assert len(left) == 3


def test_merge_returns_self() -> None:
    a = StatsAccumulator()
    assert a.merge(StatsAccumulator({"k": 3})) is a
    assert "k" in repr(a)
