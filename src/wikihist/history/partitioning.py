"""
Partitioning scheme and shard execution for the history engine.

Overview
- PartitionKeyPartitioner routes a key to a shard from ``(domain, entity_id)`` only,
  so every event and state of one entity (all years, both sides) lands in the same
  shard. The hash is SHA-256 based and therefore identical across processes and runs.
- repartition_and_sort materializes the partitioned collection: one list of
  ``(key, value)`` pairs per shard, each sorted ascending by key.
- map_partitions runs a function once per shard, sequentially or on a thread pool.
  There is no communication between shards; the first failure aborts the run.

Notes
- Ordering guarantees hold only within a shard. Callers must not rely on the
  relative processing order of shards.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor
from typing import Any, TypeVar

import structlog

from wikihist.core.hashing import stable_int_hash
from wikihist.core.keys import HasPartitionKey

__all__ = [
    "PartitionKeyPartitioner",
    "repartition_and_sort",
    "map_partitions",
    "shard_sizes",
]

logger = structlog.get_logger(__name__)

K = TypeVar("K", bound=HasPartitionKey)
V = TypeVar("V")
R = TypeVar("R")


class PartitionKeyPartitioner:
    """
    Deterministic partitioner over the entity-identity part of a key.

    Args:
        num_partitions (int): Number of shards (>= 1).

    Raises:
        ValueError: If num_partitions <= 0.

    Examples:
        >>> from wikihist.core.keys import PartitionKey
        >>> p = PartitionKeyPartitioner(8)
        >>> a, b = PartitionKey("enwiki", 42, "2001"), PartitionKey("enwiki", 42, "2017")
        >>> p.partition(a) == p.partition(b)
        True
    """

    __slots__ = ("num_partitions",)

    def __init__(self, num_partitions: int) -> None:
        if num_partitions <= 0:
            raise ValueError(f"number of partitions must be >= 1 (got {num_partitions})")
        self.num_partitions = num_partitions

    def partition(self, key: HasPartitionKey) -> int:
        domain, entity_id = key.partition_key.entity()
        return stable_int_hash(domain, entity_id) % self.num_partitions

    def __repr__(self) -> str:
        return f"PartitionKeyPartitioner({self.num_partitions})"


def repartition_and_sort(
    pairs: Iterable[tuple[K, V]],
    partitioner: PartitionKeyPartitioner,
) -> list[list[tuple[K, V]]]:
    """
    Route ``(key, value)`` pairs to shards and sort each shard by key.

    Returns:
        list[list[tuple[K, V]]]: ``partitioner.num_partitions`` shards, each sorted
        ascending by key. Sorting is stable, so values with equal keys keep their
        input order.
    """
    shards: list[list[tuple[K, V]]] = [[] for _ in range(partitioner.num_partitions)]
    for key, value in pairs:
        shards[partitioner.partition(key)].append((key, value))
    for shard in shards:
        shard.sort(key=lambda kv: kv[0].sort_key())  # type: ignore[attr-defined]
    return shards


def map_partitions(
    fn: Callable[[int], R],
    num_partitions: int,
    *,
    max_workers: int = 1,
) -> list[R]:
    """
    Call ``fn(index)`` for every shard index and return results in index order.

    Args:
        fn: Per-shard function. It must not share mutable state with other shards.
        num_partitions: Number of shards.
        max_workers: 1 (or less) runs in the calling thread; more uses a thread pool.

    Raises:
        Exception: The first shard failure (in index order) is re-raised unchanged
            once the pool has shut down; results of other shards are discarded.
    """
    if max_workers <= 1 or num_partitions <= 1:
        return [fn(i) for i in range(num_partitions)]
    with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="wikihist-shard") as pool:
        futures = [pool.submit(fn, i) for i in range(num_partitions)]
        results: list[Any] = []
        for i, fut in enumerate(futures):
            try:
                results.append(fut.result())
            except Exception:
                logger.error("partition_failed", partition=i)
                for pending in futures[i + 1 :]:
                    pending.cancel()
                raise
    return results


def shard_sizes(shards: Sequence[Sequence[Any]]) -> list[int]:
    """Sizes of each shard, for skew logging."""
    return [len(s) for s in shards]
