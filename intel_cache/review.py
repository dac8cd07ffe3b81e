"""
Review ledger for Community Intel findings.

File: reviewed-hashes.json
──────────────────────────
{
  "version": 1,
  "reviewed": [
    {"hash": "<sha256 of url>", "decision": "accepted" | "rejected", "date": "<ISO-8601 UTC>"}
  ]
}

Each fingerprint appears at most once; recording a new decision replaces the
old one. There is no lock: concurrent writers race and the last one wins.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from intel_cache.models import Decision, ReviewedEntry, ReviewedHashes
from intel_cache.storage import dump_json, write_text_atomic

logger = logging.getLogger(__name__)


def load_reviewed(path: str | Path) -> ReviewedHashes:
    """Load the ledger at *path*.

    Args:
        path: Location of ``reviewed-hashes.json``.

    Returns:
        The parsed ledger, or an empty version-1 ledger if the file is
        missing or cannot be parsed.
    """
    path = Path(path)
    if not path.exists():
        return ReviewedHashes()
    try:
        return ReviewedHashes.model_validate_json(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.warning("Ignoring unreadable review ledger %s: %s", path, exc)
        return ReviewedHashes()


def save_reviewed(path: str | Path, ledger: ReviewedHashes) -> None:
    """Atomically replace the ledger at *path*."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    write_text_atomic(path, dump_json(ledger.model_dump(mode="json", by_alias=True)))


def record_decisions(
    path: str | Path,
    fingerprints: Iterable[str],
    decision: Decision,
    now: Optional[datetime] = None,
) -> ReviewedHashes:
    """Record *decision* for every fingerprint in the batch.

    Existing entries for those fingerprints are dropped before the new ones
    are appended; entries for other fingerprints keep their position.

    Args:
        path: Location of ``reviewed-hashes.json``.
        fingerprints: Finding hashes to mark. Duplicates collapse to one entry.
        decision: ``"accepted"`` or ``"rejected"``.
        now: Decision timestamp; defaults to the current UTC time.

    Returns:
        The ledger as written.

    Raises:
        ValueError: If the batch is empty.
    """
    batch = list(dict.fromkeys(fp.strip() for fp in fingerprints if fp.strip()))
    if not batch:
        raise ValueError("No finding hashes to review.")

    now = now or datetime.now(timezone.utc)
    incoming = set(batch)

    ledger = load_reviewed(path)
    kept = [entry for entry in ledger.reviewed if entry.fingerprint not in incoming]
    fresh = [ReviewedEntry(fingerprint=fp, decision=decision, date=now) for fp in batch]
    updated = ReviewedHashes(version=ledger.version, reviewed=kept + fresh)

    save_reviewed(path, updated)
    logger.info("Recorded %d %s decision(s) in %s", len(batch), decision, path)
    return updated
