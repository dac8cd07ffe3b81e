"""Finding extraction, quality filtering and deduplication.

Responsibilities:
- Fingerprint a finding by its URL (the same post hashes the same across refreshes)
- Flatten the reddit / x / web arrays of each report into ``Finding`` objects
- Drop low-signal items (engagement score and relevance explanation length)
- Deduplicate by fingerprint, keeping the first occurrence
- Subtract the review ledger to answer "what is new since the last review?"

Ordering is stable throughout: reports in input order, and within a report
reddit, then x, then web. Dedup keeps the *first* duplicate even when a later
one has a higher score.
"""

from __future__ import annotations

import hashlib
import logging
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from pydantic import TypeAdapter

from intel_cache.models import (
    DEFAULT_MIN_SCORE,
    DEFAULT_MIN_SUMMARY_LENGTH,
    CacheConfig,
    ExtractResult,
    Finding,
    Last30DaysReport,
)
from intel_cache.review import load_reviewed
from intel_cache.storage import RAW_FILE, REVIEWED_FILE

logger = logging.getLogger(__name__)

#: Maximum length of an X post used as a finding title.
X_PREVIEW_LENGTH = 120

_REPORTS_ADAPTER: TypeAdapter[list[Last30DaysReport]] = TypeAdapter(list[Last30DaysReport])


# ── Fingerprint ────────────────────────────────────────────────────────────


def compute_finding_hash(url: str) -> str:
    """Return the SHA-256 hex digest of *url*.

    Examples:
        >>> len(compute_finding_hash("https://example.com"))
        64
    """
    return hashlib.sha256(url.encode("utf-8")).hexdigest()


def preview(text: str, limit: int = X_PREVIEW_LENGTH) -> str:
    """Truncate *text* to *limit* characters, marking the cut with ``...``."""
    return f"{text[:limit]}..." if len(text) > limit else text


# ── Quality filter ─────────────────────────────────────────────────────────


@dataclass(frozen=True)
class QualityFilter:
    """Thresholds a finding must meet. ``0`` disables a check."""

    min_score: int = DEFAULT_MIN_SCORE
    min_summary_length: int = DEFAULT_MIN_SUMMARY_LENGTH

    @classmethod
    def from_config(cls, config: CacheConfig) -> QualityFilter:
        return cls(min_score=config.min_score, min_summary_length=config.min_summary_length)


def passes_quality_filter(score: float, summary: str, options: Optional[QualityFilter] = None) -> bool:
    """Return True if a finding is worth reviewing.

    Both boundaries are inclusive: ``score == min_score`` passes, as does a
    summary exactly ``min_summary_length`` characters long.
    """
    options = options or QualityFilter()
    if score < options.min_score:
        return False
    return len(summary) >= options.min_summary_length


# ── Extraction ─────────────────────────────────────────────────────────────


def _iter_findings(report: Last30DaysReport) -> Iterator[Finding]:
    for item in report.reddit:
        yield Finding(
            fingerprint=compute_finding_hash(item.url),
            type="reddit",
            topic=report.topic,
            title=item.title,
            summary=item.why_relevant,
            url=item.url,
            score=item.score,
            date=item.date,
        )
    for item in report.x:
        yield Finding(
            fingerprint=compute_finding_hash(item.url),
            type="x",
            topic=report.topic,
            title=preview(item.text),
            summary=item.why_relevant,
            url=item.url,
            score=item.score,
            date=item.date,
        )
    for item in report.web:
        yield Finding(
            fingerprint=compute_finding_hash(item.url),
            type="web",
            topic=report.topic,
            title=item.title,
            summary=item.why_relevant,
            url=item.url,
            score=item.score,
            date=None,
        )


def extract_findings(
    reports: Sequence[Last30DaysReport],
    options: Optional[QualityFilter] = None,
) -> list[Finding]:
    """Flatten *reports* into quality-filtered, deduplicated findings.

    Args:
        reports: Raw per-topic reports, in topic order.
        options: Quality thresholds; defaults apply when omitted.

    Returns:
        Findings in input order, one per fingerprint.
    """
    seen: set[str] = set()
    unique: list[Finding] = []

    for report in reports:
        for finding in _iter_findings(report):
            if not passes_quality_filter(finding.score, finding.summary, options):
                continue
            if finding.fingerprint in seen:
                continue
            seen.add(finding.fingerprint)
            unique.append(finding)

    return unique


# ── Unreviewed query ───────────────────────────────────────────────────────


def load_staged_reports(cache_dir: str | Path) -> list[Last30DaysReport]:
    """Read ``staged-raw.json``; an unreadable file yields no reports."""
    path = Path(cache_dir) / RAW_FILE
    try:
        return _REPORTS_ADAPTER.validate_json(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.warning("Ignoring unreadable staged results %s: %s", path, exc)
        return []


def get_unreviewed_findings(
    cache_dir: str | Path,
    options: Optional[QualityFilter] = None,
) -> ExtractResult:
    """Return the staged findings that have no review decision yet.

    Never modifies the ledger.
    """
    directory = Path(cache_dir)
    if not (directory / RAW_FILE).exists():
        return ExtractResult(status="no_staged")

    findings = extract_findings(load_staged_reports(directory), options)
    if not findings:
        return ExtractResult(status="no_new")

    reviewed = load_reviewed(directory / REVIEWED_FILE).fingerprints()
    unreviewed = [f for f in findings if f.fingerprint not in reviewed]
    if not unreviewed:
        return ExtractResult(status="no_new")

    logger.info("%d of %d findings unreviewed", len(unreviewed), len(findings))
    return ExtractResult(status="has_new", findings=unreviewed)
