from __future__ import annotations

import os
from pathlib import Path

import polars as pl
import pytest

from wikihist.jobs.cli import build_argparser, main


@pytest.fixture(autouse=True)
def _isolated(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    for key in [k for k in os.environ if k.startswith("WIKIHIST_")]:
        monkeypatch.delenv(key)


def _write_inputs(tmp_path: Path, events: list[dict]) -> tuple[str, str]:
    ev = tmp_path / "events.parquet"
    snap = tmp_path / "snapshots.parquet"
    pl.DataFrame(events).write_parquet(ev)
    pl.DataFrame(
        {
            "domain": ["enwiki"],
            "user_id": [7],
            "user_text": ["Alicia"],
            "registration_timestamp": ["20100101000000"],
        }
    ).write_parquet(snap)
    return str(ev), str(snap)


EVENTS = [
    {"domain": "enwiki", "timestamp": "20100101000000", "event_type": "create",
     "user_text": "Alice", "new_user_text": None, "user_id": 7},
    {"domain": "enwiki", "timestamp": "20150101000000", "event_type": "rename",
     "user_text": "Alice", "new_user_text": "Alicia", "user_id": None},
]


def test_users_command_publishes_outputs(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    ev, snap = _write_inputs(tmp_path, EVENTS)
    code = main(["users", "--events", ev, "--snapshots", snap, "--out", "hist",
                 "--errors", "diag", "--partitions", "2"])
    assert code == 0
    assert (tmp_path / "hist" / "domain=enwiki").is_dir()
    assert (tmp_path / "diag" / "errors.tsv").is_file()
    out = capsys.readouterr().out
    assert "wrote 2 states" in out


def test_rename_cycle_exits_with_invariant_code(tmp_path: Path) -> None:
    events = [
        {"domain": "enwiki", "timestamp": "20200101000000", "event_type": "rename",
         "user_text": "A", "new_user_text": "B", "user_id": 3},
        {"domain": "enwiki", "timestamp": "20300101000000", "event_type": "rename",
         "user_text": "B", "new_user_text": "A", "user_id": 3},
    ]
    ev, snap = _write_inputs(tmp_path, events)
    assert main(["users", "--events", ev, "--snapshots", snap, "--out", "hist"]) == 2
    assert not (tmp_path / "hist").exists()


def test_missing_input_and_bad_flags_exit_with_error(tmp_path: Path) -> None:
    ev, snap = _write_inputs(tmp_path, EVENTS)
    assert main(["pages", "--events", "nope.parquet", "--snapshots", snap]) == 1
    assert main(["users", "--events", ev, "--snapshots", snap, "--partitions", "0"]) == 1
    assert main(["users", "--events", ev, "--snapshots", snap, "--log-level", "LOUD"]) == 1


def test_no_arguments_prints_help(capsys: pytest.CaptureFixture[str]) -> None:
    assert main([]) == 1
    assert "users" in capsys.readouterr().out


def test_domain_flag_is_repeatable() -> None:
    args = build_argparser().parse_args(
        ["pages", "--events", "e", "--snapshots", "s", "--domain", "enwiki", "--domain", "DEWIKI"]
    )
    assert args.domains == ["enwiki", "DEWIKI"]
    assert args.cmd == "pages"
