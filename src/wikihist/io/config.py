"""
Configuration for reconstruction runs.

Defines ReconstructionSettings, a frozen dataclass carrying runtime configuration
for the runner and the IO layer. Defaults are sourced from wikihist.core.constants
(the single source of truth).

Precedence: environment (``WIKIHIST_*``) > TOML > defaults.

TOML search order when no explicit path is given:
    1) ./wikihist.toml, either a [reconstruction] table or top-level keys
    2) ./pyproject.toml under [tool.wikihist]

Notes
- Malformed individual values are ignored (the previous value is kept); an
  explicitly given TOML path that does not exist raises IoConfigError.
- ``validate()`` rejects values the engine cannot run with (partitions < 1, ...).
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Literal

from wikihist.core.constants import COMPRESSION as CORE_COMPRESSION
from wikihist.core.constants import MAX_WORKERS as CORE_MAX_WORKERS
from wikihist.core.constants import NUM_PARTITIONS as CORE_NUM_PARTITIONS
from wikihist.core.constants import ROW_GROUP_SIZE as CORE_ROW_GROUP_SIZE
from wikihist.core.grammar import normalize_domain

from .errors import IoConfigError

Compression = Literal["zstd", "lz4", "snappy"]
_COMPRESSIONS = ("zstd", "lz4", "snappy")
_TRUTHY = {"1", "true", "t", "yes", "y", "on"}


def _bool(v: Any) -> bool:
    if isinstance(v, bool):
        return v
    if isinstance(v, int | float):
        return bool(v)
    if isinstance(v, str):
        return v.strip().lower() in _TRUTHY
    return False


def _int(v: Any) -> int | None:
    try:
        return int(v)
    except (TypeError, ValueError):
        return None


def _optional_dir(v: Any) -> str | None:
    if v is None:
        return None
    s = str(v).strip()
    return s or None


@dataclass(frozen=True)
class ReconstructionSettings:
    """
    Runtime settings for a reconstruction run.

    Attributes:
        output_dir (str): Root of the history table; one ``domain=<d>`` directory per wiki.
        errors_dir (str | None): Where ``errors.tsv`` is written. None disables diagnostics.
        num_partitions (int): Number of shards.
        max_workers (int): Shards processed concurrently (1 = sequential).
        domains (tuple[str, ...]): Domain allow-list; empty means every domain.
        compression (Literal["zstd","lz4","snappy"]): Parquet codec.
        row_group_size (int): Parquet row group size.
        strict_schema (bool): Fail when output frames do not match the table descriptor.

    Examples:
        >>> ReconstructionSettings(num_partitions=4).validate().num_partitions
        4
    """

    output_dir: str = "out"
    errors_dir: str | None = None
    num_partitions: int = CORE_NUM_PARTITIONS
    max_workers: int = CORE_MAX_WORKERS
    domains: tuple[str, ...] = field(default_factory=tuple)
    compression: Compression = CORE_COMPRESSION  # type: ignore[assignment]
    row_group_size: int = CORE_ROW_GROUP_SIZE
    strict_schema: bool = True

    def validate(self) -> ReconstructionSettings:
        """
        Check values the engine cannot work with.

        Raises:
            IoConfigError: On a non-positive partition/worker count or row group size,
                or an unsupported compression codec.
        """
        if self.num_partitions < 1:
            raise IoConfigError(f"num_partitions must be >= 1 (got {self.num_partitions})")
        if self.max_workers < 1:
            raise IoConfigError(f"max_workers must be >= 1 (got {self.max_workers})")
        if self.row_group_size < 1:
            raise IoConfigError(f"row_group_size must be >= 1 (got {self.row_group_size})")
        if self.compression not in _COMPRESSIONS:
            raise IoConfigError(f"unsupported compression {self.compression!r}")
        return self

    def allows(self, domain: str) -> bool:
        """True when ``domain`` passes the allow-list."""
        return not self.domains or domain in self.domains

    # Configuration loaders (env/TOML) with precedence: env > TOML > defaults.

    @classmethod
    def _apply_mapping(
        cls, base: ReconstructionSettings, cfg: dict[str, Any] | None
    ) -> ReconstructionSettings:
        """Apply a loose config mapping, returning a new instance."""
        if not isinstance(cfg, dict):
            return base
        s = base

        if isinstance(cfg.get("output_dir"), str) and cfg["output_dir"].strip():
            s = replace(s, output_dir=cfg["output_dir"].strip())
        if "errors_dir" in cfg:
            s = replace(s, errors_dir=_optional_dir(cfg["errors_dir"]))

        for name in ("num_partitions", "max_workers", "row_group_size"):
            if name in cfg:
                value = _int(cfg[name])
                if value is not None:
                    s = replace(s, **{name: value})

        if "domains" in cfg:
            raw = cfg["domains"]
            items = raw.split(",") if isinstance(raw, str) else raw
            if isinstance(items, list | tuple):
                domains = tuple(normalize_domain(d) for d in items if str(d).strip())
                s = replace(s, domains=domains)

        if isinstance(cfg.get("compression"), str):
            comp = cfg["compression"].strip().lower()
            if comp in _COMPRESSIONS:
                s = replace(s, compression=comp)  # type: ignore[arg-type]

        if "strict_schema" in cfg:
            s = replace(s, strict_schema=_bool(cfg["strict_schema"]))

        return s

    @classmethod
    def from_env(
        cls, base: ReconstructionSettings | None = None, prefix: str = "WIKIHIST_"
    ) -> ReconstructionSettings:
        """
        Build settings from environment variables. Precedence is env > base > defaults.

        Recognized variables:
            - WIKIHIST_OUTPUT_DIR
            - WIKIHIST_ERRORS_DIR
            - WIKIHIST_NUM_PARTITIONS
            - WIKIHIST_MAX_WORKERS
            - WIKIHIST_DOMAINS (comma separated)
            - WIKIHIST_COMPRESSION ("zstd" | "lz4" | "snappy")
            - WIKIHIST_ROW_GROUP_SIZE
            - WIKIHIST_STRICT_SCHEMA (1/0/true/false/yes/no/on/off)
        """
        s = base or cls()
        mapping: dict[str, Any] = {}
        for name in (
            "output_dir",
            "errors_dir",
            "num_partitions",
            "max_workers",
            "domains",
            "compression",
            "row_group_size",
            "strict_schema",
        ):
            v = os.getenv(prefix + name.upper())
            if v:
                mapping[name] = v
        return cls._apply_mapping(s, mapping)

    @classmethod
    def from_toml(cls, path: str | os.PathLike[str] | None = None) -> ReconstructionSettings:
        """
        Build settings from a TOML file (see module docstring for the search order).

        Raises:
            IoConfigError: If an explicit ``path`` is missing or is not valid TOML.
        """
        s = cls()
        if path is not None:
            p = Path(path)
            if not p.exists():
                raise IoConfigError(f"config file not found: {p}")
            try:
                data = tomllib.loads(p.read_text(encoding="utf-8"))
            except tomllib.TOMLDecodeError as exc:
                raise IoConfigError(f"invalid TOML in {p}: {exc}") from exc
            return cls._apply_mapping(s, _section(p, data))

        for p in (Path.cwd() / "wikihist.toml", Path.cwd() / "pyproject.toml"):
            if not p.exists():
                continue
            try:
                data = tomllib.loads(p.read_text(encoding="utf-8"))
            except tomllib.TOMLDecodeError:
                continue
            cfg = _section(p, data)
            if cfg:
                return cls._apply_mapping(s, cfg)
        return s

    @classmethod
    def load(cls, path: str | os.PathLike[str] | None = None) -> ReconstructionSettings:
        """
        Load settings applying precedence: environment > TOML > defaults.

        Args:
            path: Optional explicit TOML path. If None, search wikihist.toml, pyproject.toml.
        """
        s = cls.from_toml(path)
        return cls.from_env(base=s)


def _section(p: Path, data: dict[str, Any]) -> dict[str, Any] | None:
    if p.name == "pyproject.toml":
        tool = data.get("tool", {})
        cfg = tool.get("wikihist") if isinstance(tool, dict) else None
        return cfg if isinstance(cfg, dict) else None
    # wikihist.toml: accept either a [reconstruction] table or top-level keys
    section = data.get("reconstruction")
    return section if isinstance(section, dict) else data
