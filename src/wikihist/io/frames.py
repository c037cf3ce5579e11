"""
Conversions between engine records and Polars frames.

- States and diagnostics rows become frames typed after their table descriptor, so
  empty outputs still carry the full schema.
- Input frames become plain row dicts for the schema parsers; polars nulls map to None.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import polars as pl
from pydantic import BaseModel

from wikihist.core.grammar import TableDescriptor
from wikihist.core.schema import ErrorRow
from wikihist.core.tables import RECONSTRUCTION_ERRORS_DESC

from .validate import polars_schema


def records_to_frame(records: Sequence[BaseModel], desc: TableDescriptor) -> pl.DataFrame:
    """
    Build a frame with exactly the descriptor's columns from pydantic records.

    Examples:
        >>> from wikihist.core.schema import ErrorRow
        >>> records_to_frame([ErrorRow(domain="x", category="parsing", data="{}")],
        ...                  RECONSTRUCTION_ERRORS_DESC).shape
        (1, 3)
    """
    columns = set(desc.columns)
    rows = [r.model_dump(mode="python", include=columns) for r in records]
    return pl.DataFrame(rows, schema=polars_schema(desc))


def errors_to_frame(errors: Sequence[ErrorRow]) -> pl.DataFrame:
    return records_to_frame(errors, RECONSTRUCTION_ERRORS_DESC)


def frame_to_rows(df: pl.DataFrame) -> list[dict[str, Any]]:
    """Row dicts of a frame, in frame order."""
    return df.to_dicts()
