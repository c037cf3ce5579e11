"""
Path and layout helpers for wikihist.io.

Layout
- <output_dir>/domain=<domain>/part-<UUID>.parquet
- <errors_dir>/errors.tsv

While a run is in progress everything is written under a staging directory that
sits next to its final location:
- <parent>/.<name>.staging-<UUID>/...
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Final

from wikihist.core.grammar import normalize_domain

_DOMAIN_PREFIX: Final[str] = "domain="
ERRORS_FILE_NAME: Final[str] = "errors.tsv"


def format_domain_dir(domain: str) -> str:
    """
    Format a partition directory name as 'domain=<domain>'.

    Raises:
        GrammarError: If the domain contains characters unsafe for paths.

    Examples:
        >>> format_domain_dir("enwiki")
        'domain=enwiki'
    """
    return f"{_DOMAIN_PREFIX}{normalize_domain(domain)}"


def parse_domain_dir(name: str) -> str | None:
    """Domain encoded in a 'domain=<domain>' directory name, or None."""
    if not name.startswith(_DOMAIN_PREFIX):
        return None
    return name[len(_DOMAIN_PREFIX) :] or None


def domain_dir(root: str, domain: str) -> str:
    return os.path.join(root, format_domain_dir(domain))


def staging_dir(final_dir: str, uuid_str: str) -> str:
    """Hidden sibling of ``final_dir`` used while a run is in progress."""
    final = os.path.abspath(final_dir)
    return os.path.join(os.path.dirname(final), f".{os.path.basename(final)}.staging-{uuid_str}")


def errors_path(errors_dir: str) -> str:
    return os.path.join(errors_dir, ERRORS_FILE_NAME)


@dataclass(slots=True, frozen=True)
class PartPaths:
    """
    Temporary and final file paths of one part.

    Attributes:
        tmp_path (str): "*.parquet.tmp", written first.
        final_path (str): "*.parquet", after the atomic rename.
    """

    tmp_path: str
    final_path: str


def part_paths(root: str, domain: str, uuid_str: str) -> PartPaths:
    base_dir = domain_dir(root, domain)
    base_name = f"part-{uuid_str}.parquet"
    return PartPaths(
        tmp_path=os.path.join(base_dir, base_name + ".tmp"),
        final_path=os.path.join(base_dir, base_name),
    )
