"""
Reconstruction runner: the thin layer between files and the history engine.

``ReconstructionRunner`` parses raw rows into typed records, applies the domain
allow-list, calls ``wikihist.history.reconstruct.reconstruct`` and persists the
result through ``wikihist.io``. Outputs are staged and published only when the
whole run succeeded; an invariant violation or IO failure leaves previously
published outputs untouched.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

import structlog

from wikihist.core.grammar import EntityKind, entity_kind_from_value
from wikihist.core.schema import (
    parse_page_event,
    parse_page_snapshot,
    parse_user_event,
    parse_user_snapshot,
)
from wikihist.core.tables import history_table_for
from wikihist.history.builder import HistoryBuilder
from wikihist.history.pages import PageHistoryBuilder
from wikihist.history.reconstruct import Reconstruction, reconstruct
from wikihist.history.stats import StatsAccumulator, metric_name
from wikihist.history.users import UserHistoryBuilder
from wikihist.io.config import ReconstructionSettings
from wikihist.io.read import read_rows
from wikihist.io.write import staged_output, write_errors, write_history

__all__ = ["ReconstructionRunner", "RunSummary"]

logger = structlog.get_logger(__name__)

Row = Mapping[str, Any]


@dataclass(frozen=True)
class _KindSpec:
    parse_event: Callable[[Row], Any]
    parse_snapshot: Callable[[Row], Any]
    builder: Callable[[], HistoryBuilder[Any, Any, Any]]


_KINDS: dict[EntityKind, _KindSpec] = {
    EntityKind.USER: _KindSpec(parse_user_event, parse_user_snapshot, UserHistoryBuilder),
    EntityKind.PAGE: _KindSpec(parse_page_event, parse_page_snapshot, PageHistoryBuilder),
}


@dataclass
class RunSummary:
    """What a run produced."""

    kind: str
    states: int
    errors: int
    domains: list[str] = field(default_factory=list)
    stats: dict[str, int] = field(default_factory=dict)


class ReconstructionRunner:
    """
    Run one entity kind end to end.

    Args:
        settings: Run configuration (defaults when None); validated on construction.
        stats: Accumulator shared with the caller; a fresh one when None.

    Raises:
        IoConfigError: If ``settings`` is invalid.
    """

    def __init__(
        self,
        settings: ReconstructionSettings | None = None,
        stats: StatsAccumulator | None = None,
    ) -> None:
        self.settings = (settings or ReconstructionSettings()).validate()
        self.stats = stats if stats is not None else StatsAccumulator()

    def _allowed_rows(self, rows: Iterable[Row]) -> list[Row]:
        if not self.settings.domains:
            return list(rows)
        # Rows without a usable domain are kept; they surface as parsing errors.
        return [
            r
            for r in rows
            if not isinstance(r.get("domain"), str)
            or not r["domain"].strip()
            or self.settings.allows(r["domain"].strip().lower())
        ]

    def reconstruct(
        self, kind: EntityKind | str, event_rows: Iterable[Row], snapshot_rows: Iterable[Row]
    ) -> Reconstruction[Any]:
        """Parse rows and reconstruct in memory, without writing anything."""
        entity = kind if isinstance(kind, EntityKind) else entity_kind_from_value(kind)
        spec = _KINDS[entity]
        events = [spec.parse_event(r) for r in self._allowed_rows(event_rows)]
        snapshots = [spec.parse_snapshot(r) for r in self._allowed_rows(snapshot_rows)]
        return reconstruct(
            spec.builder(),
            events,
            snapshots,
            num_partitions=self.settings.num_partitions,
            max_workers=self.settings.max_workers,
            stats=self.stats,
        )

    def run(
        self, kind: EntityKind | str, event_rows: Iterable[Row], snapshot_rows: Iterable[Row]
    ) -> RunSummary:
        """
        Reconstruct and publish.

        Returns:
            RunSummary: Counts of written states and diagnostics rows.

        Raises:
            InvariantViolation: The engine detected corrupted or unsorted input.
            IoError: Writing or publishing failed.
        """
        entity = kind if isinstance(kind, EntityKind) else entity_kind_from_value(kind)
        log = logger.bind(entity=entity.value)
        result = self.reconstruct(entity, event_rows, snapshot_rows)

        with staged_output(self.settings) as stage:
            written = write_history(
                self.settings, stage.history_dir, history_table_for(entity), result.states
            )
            if stage.errors_file is not None:
                write_errors(stage.errors_file, result.errors)

        for part in written["parts"]:
            self.stats.add(metric_name(part["domain"], entity.value, "written_rows"), part["rows"])
        log.info(
            "run_finished",
            states=len(result.states),
            errors=len(result.errors),
            domains=written["domains"],
        )
        return RunSummary(
            kind=entity.value,
            states=len(result.states),
            errors=len(result.errors),
            domains=list(written["domains"]),
            stats=self.stats.as_dict(),
        )

    def run_paths(
        self, kind: EntityKind | str, events_path: str, snapshots_path: str
    ) -> RunSummary:
        """Read Parquet inputs, then ``run``."""
        event_rows = read_rows(events_path, self.settings.domains)
        snapshot_rows = read_rows(snapshots_path, self.settings.domains)
        logger.info(
            "inputs_loaded",
            events=len(event_rows),
            snapshots=len(snapshot_rows),
            events_path=events_path,
            snapshots_path=snapshots_path,
        )
        return self.run(kind, event_rows, snapshot_rows)
