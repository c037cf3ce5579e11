"""
Readers for run inputs and published outputs.

Overview
- scan_rows()/read_rows(): event or snapshot rows from a Parquet file or a
  directory of Parquet files, optionally restricted to a domain allow-list.
- read_history(): a published history table, with schema version checks on every
  part and directory-level domain pruning.
- read_errors(): the published diagnostics file.

Errors
- IoReadError: missing input, unreadable file or incompatible schema version.
"""

from __future__ import annotations

import os
from collections.abc import Iterable
from typing import Any

import polars as pl
import pyarrow as pa
import pyarrow.parquet as pq

from wikihist.core.errors import VersionMismatch
from wikihist.core.grammar import TableDescriptor, normalize_domain
from wikihist.core.tables import RECONSTRUCTION_ERRORS_DESC
from wikihist.core.versioning import ensure_compatible, parse_version

from .errors import IoReadError
from .frames import frame_to_rows
from .fs import walk_parquet_files
from .paths import errors_path, parse_domain_dir
from .validate import polars_schema
from .write import META_SCHEMA_VERSION


def _input_paths(path: str) -> list[str]:
    if os.path.isdir(path):
        return walk_parquet_files(path)
    if os.path.isfile(path):
        return [path]
    raise IoReadError(f"input not found: {path}")


def _allowed(domains: Iterable[str] | None) -> list[str] | None:
    if not domains:
        return None
    return [normalize_domain(d) for d in domains]


def scan_rows(path: str, domains: Iterable[str] | None = None) -> pl.LazyFrame:
    """
    Lazy scan over input rows.

    Args:
        path: Parquet file, or a directory scanned recursively for *.parquet.
        domains: Optional allow-list applied to the ``domain`` column.

    Raises:
        IoReadError: If ``path`` does not exist.
    """
    paths = _input_paths(path)
    if not paths:
        return pl.LazyFrame()
    lf = pl.scan_parquet(paths)
    allowed = _allowed(domains)
    if allowed is not None:
        lf = lf.filter(pl.col("domain").str.to_lowercase().is_in(allowed))
    return lf


def read_rows(path: str, domains: Iterable[str] | None = None) -> list[dict[str, Any]]:
    """
    Materialize input rows as dicts for the schema parsers.

    Raises:
        IoReadError: If ``path`` is missing or cannot be decoded.
    """
    try:
        return frame_to_rows(scan_rows(path, domains).collect())
    except pl.exceptions.PolarsError as exc:
        raise IoReadError(f"failed to read {path}: {exc}") from exc


def check_part_version(path: str) -> None:
    """
    Ensure a part was written with a compatible schema version.

    Raises:
        IoReadError: Missing or incompatible version metadata.
    """
    try:
        meta = pq.read_schema(path).metadata or {}
    except (OSError, pa.ArrowException) as exc:
        raise IoReadError(f"failed to read parquet schema of {path}: {exc}") from exc
    raw = meta.get(META_SCHEMA_VERSION)
    if raw is None:
        raise IoReadError(f"part {path} carries no schema version metadata")
    try:
        ensure_compatible(parse_version(raw.decode("utf-8")))
    except VersionMismatch as exc:
        raise IoReadError(f"part {path}: {exc}") from exc


def read_history(
    root: str, desc: TableDescriptor, domains: Iterable[str] | None = None
) -> pl.DataFrame:
    """
    Read a published history table.

    Args:
        root: Table root (``<output_dir>``).
        desc: Descriptor of the table; used for the empty-result schema.
        domains: Optional allow-list; prunes ``domain=<d>`` directories.

    Returns:
        pl.DataFrame: All rows, sorted by (domain, entity id, start, end) as written.
    """
    allowed = _allowed(domains)
    paths: list[str] = []
    for p in walk_parquet_files(root):
        domain = parse_domain_dir(os.path.basename(os.path.dirname(p)))
        if domain is None or (allowed is not None and domain not in allowed):
            continue
        check_part_version(p)
        paths.append(p)
    if not paths:
        return pl.DataFrame(schema=polars_schema(desc))
    return pl.concat([pl.read_parquet(p) for p in paths], how="vertical_relaxed")


def read_errors(errors_dir: str) -> pl.DataFrame:
    """
    Read the published diagnostics file.

    Raises:
        IoReadError: If the file does not exist.
    """
    path = errors_path(errors_dir)
    if not os.path.exists(path):
        raise IoReadError(f"diagnostics file not found: {path}")
    return pl.read_csv(path, separator="\t", schema=polars_schema(RECONSTRUCTION_ERRORS_DESC))
