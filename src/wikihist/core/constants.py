"""
wikihist core defaults.

Defines partitioning, year-bucketing and persistence defaults consumed by the
history engine and the IO layer. This module is zero-IO and uses only the Python
standard library.

Notes:
    - The engine computes shard indexes as ``hash(domain, entity_id) % NUM_PARTITIONS``.
    - Year buckets start at FIRST_YEAR; MediaWiki has no history older than that.
    - Parquet writers size row groups and set compression according to these values.
"""

from __future__ import annotations

__all__ = [
    "FIRST_YEAR",
    "NUM_PARTITIONS",
    "MAX_WORKERS",
    "ROW_GROUP_SIZE",
    "COMPRESSION",
    "TIMESTAMP_LENGTH",
]

# First year bucket generated when exploding intervals per year.
FIRST_YEAR: int = 1999

# Number of shards an entity type is spread over.
NUM_PARTITIONS: int = 16

# Worker threads used to process shards (1 = sequential).
MAX_WORKERS: int = 1

# Target row group size for parquet outputs.
ROW_GROUP_SIZE: int = 128 * 1024

# Default compression codec for persisted outputs.
COMPRESSION: str = "zstd"

# MediaWiki timestamps are YYYYMMDDHHMMSS.
TIMESTAMP_LENGTH: int = 14
