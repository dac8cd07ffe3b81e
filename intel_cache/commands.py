"""Command implementations shared by the CLI and the web API.

Each function does its work and returns the report to print; none of them
raise for expected failures. Configuration problems, failed topics and
synthesis errors all end up in the returned ``StatusReport``.

Commands
────────
refresh   staleness check → gather → synthesise/format → write (or backoff)
reset     delete content, raw results and metadata (never the review ledger)
extract   list staged findings that have not been reviewed yet
review    record an accept/reject decision for a batch of finding hashes
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from config.settings import Settings, load_cache_config
from intel_cache.cache import (
    build_backoff_metadata,
    calculate_next_update,
    get_interval_days,
    has_existing_cache,
    is_cache_fresh,
)
from intel_cache.diagnostics import build_status, record
from intel_cache.extract import QualityFilter, get_unreviewed_findings
from intel_cache.formatter import format_markdown
from intel_cache.gather import Gatherer
from intel_cache.models import (
    CacheMetadata,
    Decision,
    ExtractResult,
    QueryError,
    StatusReport,
    _as_utc,
)
from intel_cache.review import record_decisions
from intel_cache.storage import REVIEWED_FILE, reset_cache, write_backoff_metadata, write_cache_files
from intel_cache.synthesizer import Synthesizer, with_header

logger = logging.getLogger(__name__)


def iso(moment: datetime) -> str:
    """Format *moment* as an ISO-8601 UTC string with a ``Z`` suffix."""
    return moment.astimezone(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")


@dataclass
class RefreshOptions:
    """Inputs of one refresh run."""

    config_path: str
    cache_dir: str
    no_synthesize: bool = False
    force: bool = False
    #: Overrides ``CacheConfig.days`` when set.
    days: Optional[int] = None
    diagnostics: list[QueryError] = field(default_factory=list)


def run_refresh(
    options: RefreshOptions,
    settings: Optional[Settings] = None,
    gatherer: Optional[Gatherer] = None,
    synthesizer: Optional[Synthesizer] = None,
    now: Optional[datetime] = None,
) -> StatusReport:
    """Refresh the cache if it is stale.

    Returns:
        ``fresh`` when nothing needed doing, ``refreshed`` after a write,
        ``failed``/``no_cache`` when every topic failed (backoff written) or
        the inputs were unusable.
    """
    diagnostics = options.diagnostics
    settings = settings or Settings()

    if not options.config_path:
        record(diagnostics, "init", "--config is required for refresh")
        return build_status("failed", diagnostics)
    if not options.cache_dir:
        record(diagnostics, "init", "--cache-dir is required for refresh")
        return build_status("failed", diagnostics)

    try:
        config = load_cache_config(options.config_path)
    except (OSError, ValueError) as exc:
        record(diagnostics, "init", f"failed to read config: {exc}")
        return build_status("failed", diagnostics)

    topics = [t for t in config.topics if t.strip()]
    if not topics:
        record(diagnostics, "init", "config.topics is empty or missing")
        return build_status("failed", diagnostics)

    if not options.force and is_cache_fresh(options.cache_dir, now):
        return build_status("fresh", diagnostics)

    logger.info(
        "[refresh] %s, querying %d topics",
        "forced" if options.force else "stale/missing", len(topics),
    )
    had_cache = has_existing_cache(options.cache_dir)

    gatherer = gatherer or Gatherer(settings)
    days = options.days or config.days
    results = gatherer.gather_topics(topics, diagnostics, days=days)
    success_count = sum(1 for r in results if r is not None and r.has_data())

    if success_count == 0:
        backoff = build_backoff_metadata(options.cache_dir, topics, now)
        write_backoff_metadata(options.cache_dir, backoff)
        return build_status(
            "failed" if had_cache else "no_cache",
            diagnostics,
            "all queries failed, backoff 4h",
        )

    now = _as_utc(now) if now is not None else datetime.now(timezone.utc)
    updated_at = iso(now)

    no_synthesize = options.no_synthesize
    if not no_synthesize and synthesizer is None:
        try:
            settings.validate()
        except ValueError as exc:
            record(diagnostics, "synthesize", str(exc))
            no_synthesize = True

    if no_synthesize:
        logger.info("[refresh] synthesis disabled: using raw format")
        markdown = format_markdown(results, updated_at)
    else:
        synthesizer = synthesizer or Synthesizer(settings)
        synthesized = synthesizer.synthesize(results, config.context or ", ".join(topics))
        if synthesized:
            markdown = with_header(synthesized, updated_at)
        else:
            logger.info("[refresh] synthesis failed, falling back to raw format")
            markdown = format_markdown(results, updated_at)

    metadata = CacheMetadata(
        last_updated=now,
        topics_researched=topics,
        next_update_after=calculate_next_update(success_count, len(topics), config, now),
    )
    write_cache_files(options.cache_dir, markdown, metadata, results)

    interval = get_interval_days(success_count, len(topics), config)
    return build_status(
        "refreshed",
        diagnostics,
        f"{success_count}/{len(topics)} topics (interval: {interval}d)",
    )


def run_reset(cache_dir: str) -> StatusReport:
    """Delete the regenerable cache files."""
    diagnostics: list[QueryError] = []
    if not cache_dir:
        record(diagnostics, "init", "--cache-dir is required for reset")
        return build_status("failed", diagnostics)
    removed = reset_cache(cache_dir)
    return build_status("reset", diagnostics, ", ".join(removed) or None)


def run_extract(cache_dir: str, config_path: Optional[str] = None) -> ExtractResult | StatusReport:
    """List unreviewed findings, using the config's thresholds when given."""
    diagnostics: list[QueryError] = []
    if not cache_dir:
        record(diagnostics, "init", "--cache-dir is required for extract")
        return build_status("failed", diagnostics)

    options = QualityFilter()
    if config_path:
        try:
            options = QualityFilter.from_config(load_cache_config(config_path))
        except (OSError, ValueError) as exc:
            record(diagnostics, "init", f"failed to read config: {exc}")
            return build_status("failed", diagnostics)

    return get_unreviewed_findings(cache_dir, options)


def run_review(cache_dir: str, hashes: list[str], decision: Decision) -> StatusReport:
    """Record *decision* for the given finding hashes."""
    diagnostics: list[QueryError] = []
    if not cache_dir:
        record(diagnostics, "init", "--cache-dir is required for review")
        return build_status("failed", diagnostics)

    try:
        ledger = record_decisions(Path(cache_dir) / REVIEWED_FILE, hashes, decision)
    except ValueError as exc:
        record(diagnostics, "review", str(exc))
        return build_status("failed", diagnostics)

    count = len({h.strip() for h in hashes if h.strip()})
    logger.info("Ledger now holds %d decisions", len(ledger.reviewed))
    return build_status("reviewed", diagnostics, f"{count} findings {decision}")
