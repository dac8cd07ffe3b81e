"""
Command-line entry point for community-intel-cache.

Usage:
    community-intel-cache refresh --config ./community-intel.json --cache-dir ./cache
    community-intel-cache reset   --cache-dir ./cache
    community-intel-cache extract --cache-dir ./cache [--config ./community-intel.json]
    community-intel-cache review  --cache-dir ./cache --hashes <h1,h2> --decision accepted

Always exits 0 and prints exactly one JSON line on stdout, so a hook calling
it is never blocked. Logs go to stderr (``--verbose`` for progress).
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import Optional

from dotenv import load_dotenv

from config.settings import Settings
from intel_cache.commands import RefreshOptions, run_extract, run_refresh, run_reset, run_review
from intel_cache.diagnostics import build_status, emit_status, record
from intel_cache.models import ExtractResult, QueryError

logger = logging.getLogger(__name__)


def _days(value: str) -> int:
    days = int(value)
    if not 1 <= days <= 365:
        raise argparse.ArgumentTypeError("--days must be between 1 and 365")
    return days


def _hashes(value: str) -> list[str]:
    return [h.strip() for h in value.split(",") if h.strip()]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="community-intel-cache",
        description="Gather, synthesise and cache community intelligence for a skill.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    def common(p: argparse.ArgumentParser) -> None:
        p.add_argument("--cache-dir", default=None, help="Cache directory (env: COMMUNITY_INTEL_CACHE_DIR)")
        p.add_argument("--verbose", action="store_true", help="Log progress to stderr")

    refresh = sub.add_parser("refresh", help="Refresh the cache if stale")
    common(refresh)
    refresh.add_argument("--config", default=None, help="community-intel.json (env: COMMUNITY_INTEL_CONFIG)")
    refresh.add_argument("--no-synthesize", action="store_true", help="Skip LLM synthesis")
    refresh.add_argument("--force", action="store_true", help="Refresh even if fresh")
    refresh.add_argument("--days", type=_days, default=None, help="Lookback window, 1-365")

    reset = sub.add_parser("reset", help="Delete cached files to force a refresh")
    common(reset)

    extract = sub.add_parser("extract", help="List unreviewed findings")
    common(extract)
    extract.add_argument("--config", default=None, help="Read quality thresholds from this config")

    review = sub.add_parser("review", help="Record a decision for finding hashes")
    common(review)
    review.add_argument("--hashes", type=_hashes, default=[], help="Comma-separated finding hashes")
    review.add_argument("--decision", choices=["accepted", "rejected"], default="accepted")

    return parser


def _resolve(path: Optional[str], fallback: str) -> str:
    value = path or fallback
    return os.path.abspath(value) if value else ""


def run(argv: Optional[list[str]] = None) -> None:
    """Parse *argv*, run the command and print its status line."""
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as exc:
        if not exc.code:
            return
        diagnostics: list[QueryError] = []
        record(diagnostics, "init", "invalid arguments")
        emit_status(build_status("failed", diagnostics))
        return

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        stream=sys.stderr,
        format="%(levelname)s %(name)s: %(message)s",
    )

    settings = Settings()
    cache_dir = _resolve(args.cache_dir, settings.cache_dir)

    if args.command == "refresh":
        options = RefreshOptions(
            config_path=_resolve(args.config, settings.config_path),
            cache_dir=cache_dir,
            no_synthesize=args.no_synthesize,
            force=args.force,
            days=args.days,
        )
        report = run_refresh(options, settings=settings)
    elif args.command == "reset":
        report = run_reset(cache_dir)
    elif args.command == "extract":
        config_path = _resolve(args.config, "") if args.config else None
        report = run_extract(cache_dir, config_path)
    else:
        report = run_review(cache_dir, args.hashes, args.decision)

    if isinstance(report, ExtractResult):
        sys.stdout.write(report.model_dump_json(by_alias=True) + "\n")
        sys.stdout.flush()
    else:
        emit_status(report)


def main(argv: Optional[list[str]] = None) -> int:
    """Console-script entry point. Never returns non-zero."""
    load_dotenv()
    try:
        run(argv)
    except Exception as exc:
        logger.exception("community-intel-cache crashed")
        diagnostics: list[QueryError] = []
        record(diagnostics, "main", f"fatal: {exc}")
        emit_status(build_status("failed", diagnostics))
    return 0


if __name__ == "__main__":
    sys.exit(main())
