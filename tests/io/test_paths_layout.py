from __future__ import annotations

import os

import pytest

from wikihist.core.errors import GrammarError
from wikihist.io.paths import (
    domain_dir,
    errors_path,
    format_domain_dir,
    parse_domain_dir,
    part_paths,
    staging_dir,
)


def test_domain_dirs_roundtrip() -> None:
    assert format_domain_dir("EnWiki") == "domain=enwiki"
    assert parse_domain_dir("domain=enwiki") == "enwiki"
    assert parse_domain_dir("bucket=000001") is None
    assert parse_domain_dir("domain=") is None


def test_unsafe_domains_are_rejected() -> None:
    with pytest.raises(GrammarError):
        format_domain_dir("../etc")


def test_part_paths_live_in_the_domain_dir() -> None:
    pp = part_paths("out", "enwiki", "abc")
    assert pp.final_path == os.path.join("out", "domain=enwiki", "part-abc.parquet")
    assert pp.tmp_path == pp.final_path + ".tmp"
    assert os.path.dirname(pp.final_path) == domain_dir("out", "enwiki")


def test_staging_dir_is_a_hidden_sibling(tmp_path) -> None:
    final = str(tmp_path / "history")
    staging = staging_dir(final, "u1")
    assert os.path.dirname(staging) == str(tmp_path)
    assert os.path.basename(staging) == ".history.staging-u1"
    assert errors_path("diag") == os.path.join("diag", "errors.tsv")
