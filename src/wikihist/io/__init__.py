"""
wikihist.io: persistence boundary of the history engine.

Responsibilities
- ReconstructionSettings: run configuration (env > TOML > defaults).
- Read input rows (Parquet) with a domain allow-list.
- Write reconstructed histories as Parquet partitioned by domain and diagnostics as
  a single TSV, with atomic part writes and an all-or-nothing publish.
- Validate frames against wikihist.core.tables descriptors.

Import DAG discipline
- Depends on stdlib, polars/pyarrow, structlog and wikihist.core only.
- MUST NOT import wikihist.history or wikihist.jobs.
"""

from __future__ import annotations

from .config import ReconstructionSettings

__all__ = [
    "ReconstructionSettings",
]
