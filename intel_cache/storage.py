"""
Flat-file persistence for a cache directory.

Layout
──────
staged-intel.md        rendered markdown (synthesised or raw)
staged-raw.json        list of Last30DaysReport, failed topics dropped
last-updated.json      CacheMetadata
reviewed-hashes.json   ReviewedHashes (owned by intel_cache.review)

Every write goes to a temporary file in the same directory which is then
renamed over the target, so readers never see a half-written file.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from collections.abc import Sequence
from pathlib import Path
from typing import Optional

from intel_cache.models import CacheMetadata, Last30DaysReport

logger = logging.getLogger(__name__)

INTEL_FILE = "staged-intel.md"
RAW_FILE = "staged-raw.json"
METADATA_FILE = "last-updated.json"
REVIEWED_FILE = "reviewed-hashes.json"

#: Files removed by ``reset``. The review ledger is never removed.
RESETTABLE_FILES: tuple[str, ...] = (INTEL_FILE, RAW_FILE, METADATA_FILE)


def _file_mode() -> int:
    umask = os.umask(0)
    os.umask(umask)
    return 0o666 & ~umask


def write_text_atomic(path: Path, text: str) -> None:
    """Write *text* to *path* via a temp file + ``os.replace``.

    The file gets the usual ``0o666 & ~umask`` mode rather than the
    owner-only mode of a fresh temp file.
    """
    path = Path(path)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as handle:
            handle.write(text)
            handle.flush()
            os.fsync(handle.fileno())
        os.chmod(tmp_name, _file_mode())
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def dump_json(data: object) -> str:
    """Serialise *data* the way every cache JSON file is stored."""
    return json.dumps(data, indent="\t", ensure_ascii=False) + "\n"


def metadata_json(metadata: CacheMetadata) -> str:
    return dump_json(metadata.model_dump(mode="json"))


def write_cache_files(
    cache_dir: str | Path,
    markdown: str,
    metadata: CacheMetadata,
    reports: Sequence[Optional[Last30DaysReport]],
) -> None:
    """Persist a successful refresh.

    Order matters: content, then raw data, then metadata. A crash part-way
    leaves either no metadata or stale metadata behind, and both read as
    not fresh.

    Args:
        cache_dir: Cache directory; created if missing.
        markdown: Rendered content for ``staged-intel.md``.
        metadata: Staleness metadata for ``last-updated.json``.
        reports: Per-topic results; ``None`` entries (failed topics) are dropped.
    """
    directory = Path(cache_dir)
    directory.mkdir(parents=True, exist_ok=True)

    raw = [report.model_dump(mode="json") for report in reports if report is not None]

    write_text_atomic(directory / INTEL_FILE, markdown)
    write_text_atomic(directory / RAW_FILE, dump_json(raw))
    write_text_atomic(directory / METADATA_FILE, metadata_json(metadata))

    logger.info("Wrote cache files to %s (%d reports)", directory, len(raw))


def write_backoff_metadata(cache_dir: str | Path, metadata: CacheMetadata) -> None:
    """Write only ``last-updated.json``, leaving any existing content in place."""
    directory = Path(cache_dir)
    directory.mkdir(parents=True, exist_ok=True)
    write_text_atomic(directory / METADATA_FILE, metadata_json(metadata))
    logger.info("Wrote backoff metadata to %s", directory)


def reset_cache(cache_dir: str | Path) -> list[str]:
    """Delete the content, raw and metadata files.

    Returns:
        Names of the files that were actually removed.
    """
    directory = Path(cache_dir)
    removed: list[str] = []
    for name in RESETTABLE_FILES:
        path = directory / name
        if path.exists():
            path.unlink()
            removed.append(name)
            logger.info("removed: %s", path)
    return removed
