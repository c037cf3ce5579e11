"""
Command line entry point: ``wikihist users|pages``.

Exit codes
- 0: outputs published
- 1: configuration, input or IO error (nothing published)
- 2: invariant violation in the engine (nothing published)
"""

from __future__ import annotations

import argparse
import sys
from dataclasses import replace

import structlog

from wikihist.core.errors import InvariantViolation
from wikihist.core.grammar import EntityKind, normalize_domain
from wikihist.io.config import ReconstructionSettings
from wikihist.io.errors import IoError

from .logging import configure_logging
from .runner import ReconstructionRunner

logger = structlog.get_logger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_INVARIANT = 2


def _common_options() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(add_help=False)
    p.add_argument("--events", type=str, required=True, help="Events parquet file or directory.")
    p.add_argument(
        "--snapshots", type=str, required=True, help="Snapshots parquet file or directory."
    )
    p.add_argument("--out", type=str, default=None, help="History output directory.")
    p.add_argument("--errors", type=str, default=None, help="Diagnostics output directory.")
    p.add_argument(
        "--domain",
        dest="domains",
        action="append",
        default=None,
        help="Restrict to this domain (repeatable).",
    )
    p.add_argument("--partitions", type=int, default=None, help="Number of shards.")
    p.add_argument("--workers", type=int, default=None, help="Shards processed concurrently.")
    p.add_argument("--config", type=str, default=None, help="TOML config file.")
    p.add_argument("--log-level", type=str, default="INFO", help="Log level (default INFO).")
    p.add_argument("--json-logs", action="store_true", help="Emit JSON log lines.")
    return p


def build_argparser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="wikihist", description="Reconstruct wiki user and page histories."
    )
    sub = p.add_subparsers(dest="cmd", required=True)
    common = _common_options()
    sub.add_parser("users", parents=[common], help="Reconstruct user history.")
    sub.add_parser("pages", parents=[common], help="Reconstruct page history.")
    return p


def settings_from_args(args: argparse.Namespace) -> ReconstructionSettings:
    """Command line flags override env, which overrides TOML and defaults."""
    s = ReconstructionSettings.load(args.config)
    if args.out:
        s = replace(s, output_dir=args.out)
    if args.errors:
        s = replace(s, errors_dir=args.errors)
    if args.domains:
        s = replace(s, domains=tuple(normalize_domain(d) for d in args.domains))
    if args.partitions is not None:
        s = replace(s, num_partitions=args.partitions)
    if args.workers is not None:
        s = replace(s, max_workers=args.workers)
    return s.validate()


def main(argv: list[str] | None = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    parser = build_argparser()
    if not argv:
        parser.print_help()
        return EXIT_ERROR
    args = parser.parse_args(argv)

    try:
        configure_logging(args.log_level, json=args.json_logs)
    except ValueError as exc:
        print(f"[ERROR] {exc}", file=sys.stderr)
        return EXIT_ERROR

    kind = EntityKind.USER if args.cmd == "users" else EntityKind.PAGE
    try:
        settings = settings_from_args(args)
        summary = ReconstructionRunner(settings).run_paths(kind, args.events, args.snapshots)
    except InvariantViolation as exc:
        logger.error("invariant_violation", error_type=type(exc).__name__, error=str(exc))
        print(f"[ERROR] {type(exc).__name__}: {exc}", file=sys.stderr)
        return EXIT_INVARIANT
    except (IoError, ValueError) as exc:
        logger.error("run_failed", error_type=type(exc).__name__, error=str(exc))
        print(f"[ERROR] {type(exc).__name__}: {exc}", file=sys.stderr)
        return EXIT_ERROR

    print(
        f"[INFO] {summary.kind}: wrote {summary.states} states "
        f"({len(summary.domains)} domains) to {settings.output_dir}"
    )
    if settings.errors_dir:
        print(f"[INFO] {summary.errors} diagnostics rows in {settings.errors_dir}")
    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
