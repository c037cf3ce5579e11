from __future__ import annotations

import os
from pathlib import Path

import polars as pl
import pyarrow.parquet as pq
import pytest

from wikihist.core.schema import ErrorRow, UserState
from wikihist.core.tables import RECONSTRUCTION_ERRORS_DESC, USER_HISTORY_DESC
from wikihist.core.versioning import SCHEMA_V, format_version
from wikihist.io import write as write_module
from wikihist.io.config import ReconstructionSettings
from wikihist.io.errors import IoReadError, IoSchemaError, IoWriteError
from wikihist.io.fs import walk_parquet_files
from wikihist.io.read import read_errors, read_history, read_rows
from wikihist.io.validate import validate_frame_against_descriptor
from wikihist.io.write import (
    META_SCHEMA_VERSION,
    staged_output,
    write_errors,
    write_history,
)


def _state(domain: str, user_id: int, start: str, end: str | None, text: str) -> UserState:
    return UserState(
        domain=domain,
        user_id=user_id,
        start_timestamp=start,
        end_timestamp=end,
        caused_by_event_type="create",
        user_text_historical=text,
        user_text=text,
        user_groups_historical=["bot"],
        user_groups=[],
        registration_timestamp="20010101000000",
    )


def _states() -> list[UserState]:
    return [
        _state("dewiki", 3, "20010101000000", None, "Hans"),
        _state("enwiki", 1, "20010101000000", "20050101000000", "A"),
        _state("enwiki", 1, "20050101000000", None, "B"),
    ]


def test_history_is_partitioned_by_domain_with_version_metadata(tmp_path: Path) -> None:
    settings = ReconstructionSettings(output_dir=str(tmp_path / "hist"))
    root = str(tmp_path / "hist")
    summary = write_history(settings, root, USER_HISTORY_DESC, _states())

    assert summary["rows"] == 3
    assert summary["domains"] == ["dewiki", "enwiki"]
    parts = walk_parquet_files(root)
    assert sorted(os.path.basename(os.path.dirname(p)) for p in parts) == [
        "domain=dewiki",
        "domain=enwiki",
    ]
    meta = pq.read_schema(parts[0]).metadata
    assert meta[META_SCHEMA_VERSION].decode() == format_version(SCHEMA_V)
    assert not [p for p in os.listdir(os.path.dirname(parts[0])) if p.endswith(".tmp")]

    df = read_history(root, USER_HISTORY_DESC)
    assert df.height == 3
    assert df.filter(pl.col("user_id") == 1).get_column("user_text_historical").to_list() == ["A", "B"]
    assert df.get_column("user_groups_historical").to_list()[0] == ["bot"]
    assert read_history(root, USER_HISTORY_DESC, domains=["enwiki"]).height == 2


def test_empty_history_reads_back_with_schema(tmp_path: Path) -> None:
    df = read_history(str(tmp_path / "none"), USER_HISTORY_DESC)
    assert df.is_empty()
    assert df.columns == list(USER_HISTORY_DESC.columns)


def test_parts_with_foreign_schema_version_are_refused(tmp_path: Path) -> None:
    part_dir = tmp_path / "hist" / "domain=enwiki"
    part_dir.mkdir(parents=True)
    pl.DataFrame({"domain": ["enwiki"]}).write_parquet(part_dir / "part-x.parquet")
    with pytest.raises(IoReadError):
        read_history(str(tmp_path / "hist"), USER_HISTORY_DESC)


def test_errors_tsv_roundtrip(tmp_path: Path) -> None:
    rows = [
        ErrorRow(domain="enwiki", category="matching", data='{"user_text":"tab\\there"}'),
        ErrorRow(domain="enwiki", category="empty-registration", data='{"a":"quote \\" x"}'),
    ]
    path = str(tmp_path / "diag" / "errors.tsv")
    assert write_errors(path, rows) == 2
    df = read_errors(str(tmp_path / "diag"))
    assert df.columns == list(RECONSTRUCTION_ERRORS_DESC.columns)
    assert df.get_column("data").to_list() == [r.data for r in rows]
    with open(path, encoding="utf-8") as fh:
        assert fh.readline().rstrip("\n").split("\t") == ["domain", "category", "data"]


def test_staged_output_publishes_only_on_success(tmp_path: Path) -> None:
    settings = ReconstructionSettings(
        output_dir=str(tmp_path / "hist"), errors_dir=str(tmp_path / "diag")
    )
    with staged_output(settings) as stage:
        write_history(settings, stage.history_dir, USER_HISTORY_DESC, _states())
        write_errors(stage.errors_file, [])
        assert not (tmp_path / "hist").exists()
    assert len(walk_parquet_files(str(tmp_path / "hist"))) == 2
    assert (tmp_path / "diag" / "errors.tsv").exists()

    with pytest.raises(RuntimeError):
        with staged_output(settings) as stage:
            write_history(settings, stage.history_dir, USER_HISTORY_DESC, _states()[:1])
            raise RuntimeError("shard failed")
    # previous publish untouched, no staging leftovers
    assert len(walk_parquet_files(str(tmp_path / "hist"))) == 2
    assert sorted(os.listdir(tmp_path)) == ["diag", "hist"]
    assert os.listdir(tmp_path / "diag") == ["errors.tsv"]


def test_rerun_replaces_previous_output(tmp_path: Path) -> None:
    settings = ReconstructionSettings(output_dir=str(tmp_path / "hist"))
    for states in (_states(), _states()[:1]):
        with staged_output(settings) as stage:
            write_history(settings, stage.history_dir, USER_HISTORY_DESC, states)
    assert read_history(str(tmp_path / "hist"), USER_HISTORY_DESC).height == 1


def test_validation_rejects_missing_and_null_required_columns() -> None:
    with pytest.raises(IoSchemaError):
        validate_frame_against_descriptor(pl.DataFrame({"domain": ["x"]}), RECONSTRUCTION_ERRORS_DESC)
    df = pl.DataFrame({"domain": ["x"], "category": [None], "data": ["{}"]})
    with pytest.raises(IoSchemaError):
        validate_frame_against_descriptor(df, RECONSTRUCTION_ERRORS_DESC)
    extra = pl.DataFrame({"domain": ["x"], "category": ["parsing"], "data": ["{}"], "more": [1]})
    with pytest.raises(IoSchemaError):
        validate_frame_against_descriptor(extra, RECONSTRUCTION_ERRORS_DESC)
    assert validate_frame_against_descriptor(extra, RECONSTRUCTION_ERRORS_DESC, strict=False).width == 4


def test_read_rows_filters_domains(tmp_path: Path) -> None:
    path = tmp_path / "events.parquet"
    pl.DataFrame({"domain": ["enwiki", "dewiki", "EnWiki"], "n": [1, 2, 3]}).write_parquet(path)
    assert [r["n"] for r in read_rows(str(path), ["enwiki"])] == [1, 3]
    assert len(read_rows(str(tmp_path))) == 3
    with pytest.raises(IoReadError):
        read_rows(str(tmp_path / "missing.parquet"))


def test_failed_publish_restores_previous_diagnostics(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    settings = ReconstructionSettings(
        output_dir=str(tmp_path / "hist"), errors_dir=str(tmp_path / "diag")
    )
    old = [ErrorRow(domain="enwiki", category="parsing", data="{}")]
    with staged_output(settings) as stage:
        write_history(settings, stage.history_dir, USER_HISTORY_DESC, _states())
        write_errors(stage.errors_file, old)
    published = (tmp_path / "diag" / "errors.tsv").read_text(encoding="utf-8")

    def refuse(src: str, dst: str) -> None:
        raise OSError("disk full")

    monkeypatch.setattr(write_module, "replace_dir", refuse)
    with pytest.raises(IoWriteError):
        with staged_output(settings) as stage:
            write_history(settings, stage.history_dir, USER_HISTORY_DESC, _states()[:1])
            write_errors(stage.errors_file, [])

    assert (tmp_path / "diag" / "errors.tsv").read_text(encoding="utf-8") == published
    assert os.listdir(tmp_path / "diag") == ["errors.tsv"]
    assert sorted(os.listdir(tmp_path)) == ["diag", "hist"]
    assert read_history(str(tmp_path / "hist"), USER_HISTORY_DESC).height == 3
