"""
Frame checks against wikihist.core.tables descriptors.

Every frame is checked on its way to disk, and diagnostics are checked on their
way back in:

- required columns must exist and hold no nulls;
- with strict=True, columns outside the descriptor are refused;
- "i64" / "str" / "bool" columns are cast when the cast is lossless;
- "list[str]" columns must already be lists (an all-null inner type is cast).
"""

from __future__ import annotations

import polars as pl

from wikihist.core.grammar import TableDescriptor

from .errors import IoSchemaError

# Polars dtypes are singleton-like objects; keep the mapping loosely typed.
SCALAR_DTYPES: dict[str, object] = {
    "i64": pl.Int64,
    "str": pl.Utf8,
    "bool": pl.Boolean,
}


def polars_dtype(name: str) -> object:
    """
    Polars dtype for a descriptor dtype name.

    Raises:
        IoSchemaError: For unknown dtype names.
    """
    if name in SCALAR_DTYPES:
        return SCALAR_DTYPES[name]
    if name == "list[str]":
        return pl.List(pl.Utf8)
    raise IoSchemaError(f"unknown descriptor dtype {name!r}")


def polars_schema(desc: TableDescriptor) -> dict[str, object]:
    """Ordered column -> dtype mapping for building frames."""
    return {col: polars_dtype(name) for col, name in desc.columns.items()}


def _coerce(df: pl.DataFrame, col: str, dtype_name: str) -> pl.DataFrame:
    actual = df.schema[col]
    target = polars_dtype(dtype_name)
    if dtype_name == "list[str]" and not isinstance(actual, pl.List):
        raise IoSchemaError(f"{col}: expected a list[str] column, got {actual}")
    if actual == target:
        return df
    try:
        return df.with_columns(pl.col(col).cast(target, strict=True))  # type: ignore[arg-type]
    except pl.exceptions.PolarsError as exc:
        raise IoSchemaError(f"{col}: cannot cast {actual} to {target}: {exc}") from exc


def validate_frame_against_descriptor(
    df: pl.DataFrame,
    desc: TableDescriptor,
    *,
    strict: bool = True,
) -> pl.DataFrame:
    """
    Check ``df`` against ``desc`` and return it in canonical shape.

    Args:
        df (pl.DataFrame): Frame to check.
        desc (TableDescriptor): Descriptor from wikihist.core.tables.
        strict (bool): Refuse columns the descriptor does not know.

    Returns:
        pl.DataFrame: Descriptor columns first and in descriptor order, then any
        tolerated extras; scalar columns cast to their declared dtype.

    Raises:
        IoSchemaError: Missing or null required columns, unknown columns under
            strict mode, or a dtype that cannot be cast.
    """
    missing = [c for c in desc.required if c not in df.columns]
    if missing:
        raise IoSchemaError(f"{desc.name.value}: missing required columns {missing!r}")
    extras = [c for c in df.columns if c not in desc.columns]
    if strict and extras:
        raise IoSchemaError(f"{desc.name.value}: unexpected columns {extras!r}")

    for col, dtype_name in desc.columns.items():
        if col not in df.columns:
            continue
        df = _coerce(df, col, dtype_name)
        if col in desc.required and df.get_column(col).null_count():
            raise IoSchemaError(f"{desc.name.value}: required column {col!r} holds nulls")

    return df.select([c for c in desc.columns if c in df.columns] + extras)
