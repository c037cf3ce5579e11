"""
Writers for reconstructed histories and diagnostics.

Overview
- Validates frames against wikihist.core.tables descriptors (source of truth).
- Splits the history frame by domain and writes one Parquet part per domain with
  tmp -> fsync -> atomic rename, embedding schema version and table name in the
  Parquet key-value metadata.
- Writes diagnostics as a single tab-separated file with a header row.
- ``staged_output`` makes a run all-or-nothing: parts go to a staging directory
  that replaces the published directory only when the block exits cleanly.

Errors
- IoSchemaError: frame failed validation against its descriptor.
- IoWriteError: Parquet/TSV write, fsync or rename failed.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any

import polars as pl
import pyarrow as pa
import pyarrow.parquet as pq
import structlog
from pydantic import BaseModel

from wikihist.core.grammar import TableDescriptor
from wikihist.core.schema import ErrorRow
from wikihist.core.versioning import SCHEMA_V, format_version

from .config import ReconstructionSettings
from .errors import IoWriteError
from .frames import errors_to_frame, records_to_frame
from .fs import fsync_path, makedirs, remove_quietly, rename_atomic, replace_dir
from .paths import errors_path, part_paths, staging_dir
from .validate import validate_frame_against_descriptor

logger = structlog.get_logger(__name__)

META_SCHEMA_VERSION = b"wikihist_schema_version"
META_TABLE_NAME = b"wikihist_table_name"


def _write_parquet_atomic(
    df: pl.DataFrame,
    tmp_path: str,
    final_path: str,
    *,
    table_name: str,
    settings: ReconstructionSettings,
) -> None:
    try:
        arrow_table = df.to_arrow()
        meta = dict(arrow_table.schema.metadata or {})
        meta.update(
            {
                META_SCHEMA_VERSION: format_version(SCHEMA_V).encode("utf-8"),
                META_TABLE_NAME: table_name.encode("utf-8"),
            }
        )
        arrow_table = arrow_table.replace_schema_metadata(meta)
        pq.write_table(
            arrow_table,
            tmp_path,
            compression=settings.compression,
            row_group_size=settings.row_group_size,
        )
        fsync_path(tmp_path)
        rename_atomic(tmp_path, final_path)
    except (OSError, pa.ArrowException) as exc:
        remove_quietly(tmp_path)
        raise IoWriteError(f"failed to write parquet part {final_path}: {exc}") from exc


def write_history(
    settings: ReconstructionSettings,
    root: str,
    desc: TableDescriptor,
    states: Sequence[BaseModel],
) -> dict[str, Any]:
    """
    Write reconstructed states under ``root``, one part per domain.

    Args:
        settings: Compression, row group size and strictness.
        root: Table root (normally a staging directory, see staged_output).
        desc: History table descriptor for the entity kind.
        states: Reconstructed intervals, already in output order.

    Returns:
        dict[str, Any]: Summary with keys table, rows, domains and parts
        (per-part {"domain", "path", "rows"}).

    Raises:
        IoSchemaError: The states frame does not match ``desc``.
        IoWriteError: A part could not be written.
    """
    table_name = desc.name.value
    df = validate_frame_against_descriptor(
        records_to_frame(states, desc), desc, strict=settings.strict_schema
    )
    parts: list[dict[str, Any]] = []
    domains = df.get_column("domain").unique().sort().to_list() if not df.is_empty() else []
    for domain in domains:
        df_d = df.filter(pl.col("domain") == domain)
        ppaths = part_paths(root, domain, uuid.uuid4().hex)
        makedirs(os.path.dirname(ppaths.final_path))
        _write_parquet_atomic(
            df_d, ppaths.tmp_path, ppaths.final_path, table_name=table_name, settings=settings
        )
        parts.append({"domain": domain, "path": ppaths.final_path, "rows": df_d.height})
        logger.debug("part_written", table=table_name, domain=domain, rows=df_d.height)

    return {"table": table_name, "rows": df.height, "domains": domains, "parts": parts}


def write_errors(path: str, errors: Sequence[ErrorRow]) -> int:
    """
    Write diagnostics rows to ``path`` as tab-separated values (atomic).

    Returns:
        int: Number of rows written.

    Raises:
        IoWriteError: On any filesystem failure.
    """
    df = errors_to_frame(errors)
    tmp_path = f"{path}.{uuid.uuid4().hex}.tmp"
    try:
        makedirs(os.path.dirname(os.path.abspath(path)))
        df.write_csv(tmp_path, separator="\t")
        fsync_path(tmp_path)
        rename_atomic(tmp_path, path)
    except (OSError, pl.exceptions.PolarsError) as exc:
        remove_quietly(tmp_path)
        raise IoWriteError(f"failed to write diagnostics {path}: {exc}") from exc
    return df.height


@dataclass
class StagedOutput:
    """
    Staging locations of one run.

    Attributes:
        history_dir (str): Staging root of the history table.
        errors_file (str | None): Staged diagnostics file, None when disabled.
        final_history_dir (str): Published history root.
        final_errors_file (str | None): Published diagnostics file.
    """

    history_dir: str
    errors_file: str | None
    final_history_dir: str
    final_errors_file: str | None

    def publish(self) -> None:
        """
        Move the staged outputs into place.

        The diagnostics file goes first and is rolled back (previous file restored)
        when the history directory cannot be swapped in, so a failed publish leaves
        the previous outputs as they were.

        Raises:
            IoWriteError: If either rename fails.
        """
        final = self.final_errors_file
        staged = self.errors_file
        has_errors = final is not None and staged is not None and os.path.exists(staged)
        backup: str | None = None
        try:
            if has_errors:
                if os.path.exists(final):
                    backup = f"{final}.{uuid.uuid4().hex}.old"
                    rename_atomic(final, backup)
                rename_atomic(staged, final)
            replace_dir(self.history_dir, self.final_history_dir)
        except OSError as exc:
            if has_errors:
                if not os.path.exists(staged):
                    remove_quietly(final)
                if backup is not None:
                    rename_atomic(backup, final)
            raise IoWriteError(f"failed to publish outputs: {exc}") from exc
        if backup is not None:
            remove_quietly(backup)

    def discard(self) -> None:
        remove_quietly(self.history_dir)
        if self.errors_file is not None:
            remove_quietly(self.errors_file)


@contextmanager
def staged_output(settings: ReconstructionSettings) -> Iterator[StagedOutput]:
    """
    Stage a run's outputs and publish them only if the block completes.

    Any exception raised inside the block discards the staged files and propagates
    unchanged; previously published outputs stay untouched.

    Examples:
        >>> with staged_output(settings) as stage:  # doctest: +SKIP
        ...     write_history(settings, stage.history_dir, USER_HISTORY_DESC, states)
    """
    uid = uuid.uuid4().hex
    final_errors = errors_path(settings.errors_dir) if settings.errors_dir else None
    stage = StagedOutput(
        history_dir=staging_dir(settings.output_dir, uid),
        errors_file=f"{final_errors}.{uid}.staging" if final_errors else None,
        final_history_dir=settings.output_dir,
        final_errors_file=final_errors,
    )
    makedirs(stage.history_dir)
    try:
        yield stage
        stage.publish()
    except BaseException:
        stage.discard()
        logger.warning("outputs_discarded", output_dir=settings.output_dir)
        raise
    logger.info("outputs_published", output_dir=settings.output_dir, errors=final_errors)
