"""
Schema version metadata and helpers for reconstructed-history outputs.

Exposes the canonical schema version (SCHEMA_V) embedded in every parquet part the
IO layer writes, and the helpers used to check artifacts against it. This module is
zero-IO.

Notes:
    - Writers embed ``format_version(SCHEMA_V)`` in parquet key-value metadata.
    - Readers parse it back with ``parse_version`` and guard with ``ensure_compatible``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date

from .errors import VersionMismatch

__all__ = [
    "SchemaVersion",
    "SCHEMA_V",
    "is_compatible",
    "format_version",
    "parse_version",
    "ensure_compatible",
]

SCHEMA_MAJOR_VERSION = 1
SCHEMA_MINOR_VERSION = 0


@dataclass(frozen=True)
class SchemaVersion:
    """
    Immutable semantic version with ISO release date for history outputs.

    Attributes:
        major (int): Non-negative major component signalling breaking changes.
        minor (int): Non-negative minor component for additive, non-breaking changes.
        date (str): ISO YYYY-MM-DD release date.

    Raises:
        ValueError: If any component is negative or the date is not ISO compliant.
    """

    major: int
    minor: int
    date: str  # ISO YYYY-MM-DD

    def __post_init__(self) -> None:
        if self.major < 0:
            raise ValueError(f"SchemaVersion major must be non-negative, got {self.major}")
        if self.minor < 0:
            raise ValueError(f"SchemaVersion minor must be non-negative, got {self.minor}")
        try:
            date.fromisoformat(self.date)
        except ValueError as exc:
            raise ValueError(
                f"SchemaVersion date must be ISO YYYY-MM-DD, got {self.date!r}"
            ) from exc


SCHEMA_V = SchemaVersion(SCHEMA_MAJOR_VERSION, SCHEMA_MINOR_VERSION, "2026-09-01")

_VERSION_RE = re.compile(r"^(\d+)\.(\d+)@(\d{4}-\d{2}-\d{2})$")


def is_compatible(ver: SchemaVersion) -> bool:
    """
    Check whether a version matches the supported schema contract.

    Returns:
        bool: True if ver shares both major and minor numbers with SCHEMA_V.

    Examples:
        >>> from wikihist.core.versioning import SCHEMA_V, is_compatible
        >>> is_compatible(SCHEMA_V)
        True
    """
    return ver.major == SCHEMA_V.major and ver.minor == SCHEMA_V.minor


def format_version(ver: SchemaVersion) -> str:
    """Render a version as ``"<major>.<minor>@<date>"`` (parquet metadata form)."""
    return f"{ver.major}.{ver.minor}@{ver.date}"


def parse_version(text: str) -> SchemaVersion:
    """
    Parse the ``"<major>.<minor>@<date>"`` form written by ``format_version``.

    Raises:
        VersionMismatch: If the text is not a well-formed version string.
    """
    m = _VERSION_RE.match(text or "")
    if m is None:
        raise VersionMismatch(f"malformed schema version {text!r}")
    return SchemaVersion(int(m.group(1)), int(m.group(2)), m.group(3))


def ensure_compatible(ver: SchemaVersion) -> None:
    """Raise VersionMismatch unless ``ver`` is compatible with SCHEMA_V."""
    if not is_compatible(ver):
        raise VersionMismatch(
            f"artifact schema {format_version(ver)} is not compatible with {format_version(SCHEMA_V)}"
        )
