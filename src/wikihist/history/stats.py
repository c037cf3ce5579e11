"""
Run counters with commutative merge semantics.

Each shard gets its own StatsAccumulator; shards only ever increment it. The
driver merges every shard's accumulator into the run accumulator after all
shards have completed, so no locking is needed and the merged totals do not
depend on shard completion order.

Metric names follow ``<domain>.<kind>_history.<metric>``, e.g.
``enwiki.user_history.events_parsing.ok``.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Mapping

__all__ = ["StatsAccumulator", "metric_name"]


def metric_name(domain: str, kind: str, metric: str) -> str:
    """
    Build a metric name.

    Examples:
        >>> metric_name("enwiki", "user", "written_rows")
        'enwiki.user_history.written_rows'
    """
    return f"{domain}.{kind}_history.{metric}"


class StatsAccumulator:
    """Add-only counters; see module docstring for the merge discipline."""

    __slots__ = ("_counts",)

    def __init__(self, initial: Mapping[str, int] | None = None) -> None:
        self._counts: Counter[str] = Counter(initial or {})

    def add(self, name: str, n: int = 1) -> None:
        self._counts[name] += n

    def merge(self, other: StatsAccumulator) -> StatsAccumulator:
        """Fold ``other`` into this accumulator and return self."""
        self._counts.update(other._counts)
        return self

    @classmethod
    def merged(cls, parts: Iterable[StatsAccumulator]) -> StatsAccumulator:
        out = cls()
        for part in parts:
            out.merge(part)
        return out

    def get(self, name: str) -> int:
        return self._counts.get(name, 0)

    def as_dict(self) -> dict[str, int]:
        return dict(sorted(self._counts.items()))

    def __len__(self) -> int:
        return len(self._counts)

    def __repr__(self) -> str:
        return f"StatsAccumulator({self.as_dict()!r})"
