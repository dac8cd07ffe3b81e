"""Cache staleness checking, refresh interval calculation, and backoff.

A cache directory is *fresh* when all of the following hold:

1. ``last-updated.json`` exists and validates as ``CacheMetadata``
2. ``staged-intel.md`` exists (metadata alone is not enough)
3. ``last_updated`` is at most ``MAX_CACHE_AGE_DAYS`` old (clock-skew guard)
4. ``next_update_after`` is still in the future

Anything unreadable counts as stale, so a broken cache is refreshed rather
than served.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

from intel_cache.models import CacheConfig, CacheMetadata, _as_utc
from intel_cache.storage import INTEL_FILE, METADATA_FILE

logger = logging.getLogger(__name__)

#: Maximum cache age before a refresh is forced regardless of the deadline.
MAX_CACHE_AGE_DAYS = 60
#: Retry delay after every topic query failed. Not configurable.
BACKOFF_HOURS = 4


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _resolve_now(now: Optional[datetime]) -> datetime:
    """Return *now* as an aware UTC time, defaulting to the current time."""
    return _as_utc(now) if now is not None else _utcnow()


def read_metadata(cache_dir: str | Path) -> Optional[CacheMetadata]:
    """Load ``last-updated.json``, or ``None`` if missing or corrupt."""
    path = Path(cache_dir) / METADATA_FILE
    if not path.exists():
        return None
    try:
        return CacheMetadata.model_validate_json(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.warning("Ignoring unreadable metadata %s: %s", path, exc)
        return None


def is_cache_fresh(cache_dir: str | Path, now: Optional[datetime] = None) -> bool:
    """Return True if the cached intel can be served without refreshing."""
    directory = Path(cache_dir)
    if not (directory / METADATA_FILE).exists():
        return False
    if not (directory / INTEL_FILE).exists():
        return False

    metadata = read_metadata(directory)
    if metadata is None:
        return False

    now = _resolve_now(now)
    if now - metadata.last_updated > timedelta(days=MAX_CACHE_AGE_DAYS):
        logger.info("Cache older than %d days, forcing refresh", MAX_CACHE_AGE_DAYS)
        return False

    return now < metadata.next_update_after


def get_interval_days(success_count: int, total_topics: int, config: CacheConfig) -> int:
    """Return the refresh interval earned by a run's success rate.

    At least half the topics succeeding earns the full interval; otherwise the
    thin interval is used so a mostly-failing topic set heals sooner.
    """
    if success_count * 2 < total_topics:
        return config.thin_cache_interval_days
    return config.refresh_interval_days


def calculate_next_update(
    success_count: int,
    total_topics: int,
    config: CacheConfig,
    now: Optional[datetime] = None,
) -> datetime:
    """Return the ``next_update_after`` deadline for a successful run."""
    now = _resolve_now(now)
    return now + timedelta(days=get_interval_days(success_count, total_topics, config))


def build_backoff_metadata(
    cache_dir: str | Path,
    topics: list[str],
    now: Optional[datetime] = None,
) -> CacheMetadata:
    """Build metadata for a run in which every topic query failed.

    The previous ``last_updated`` is kept so a failed run never looks like a
    refresh to the clock-skew guard. Without readable prior metadata (or if it
    lies in the future) the current time is used.
    """
    now = _resolve_now(now)
    existing = read_metadata(cache_dir)

    last_updated = now
    if existing is not None and existing.last_updated <= now:
        last_updated = existing.last_updated

    return CacheMetadata(
        last_updated=last_updated,
        topics_researched=list(topics),
        next_update_after=now + timedelta(hours=BACKOFF_HOURS),
    )


def has_existing_cache(cache_dir: str | Path) -> bool:
    """Return True if rendered intel is present (used for status reporting)."""
    return (Path(cache_dir) / INTEL_FILE).exists()
