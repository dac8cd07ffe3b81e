"""Tests for intel_cache/storage.py — atomic cache writes and reset."""

from __future__ import annotations

import json
import os
import stat
from datetime import datetime, timezone
from unittest.mock import patch

import pytest

from intel_cache import storage
from intel_cache.models import CacheMetadata, Last30DaysReport
from intel_cache.storage import (
    reset_cache,
    write_backoff_metadata,
    write_cache_files,
    write_text_atomic,
)


@pytest.fixture
def metadata() -> CacheMetadata:
    return CacheMetadata(
        last_updated=datetime(2026, 1, 1, tzinfo=timezone.utc),
        topics_researched=["topic-a", "topic-b"],
        next_update_after=datetime(2026, 1, 31, tzinfo=timezone.utc),
    )


@pytest.fixture
def report() -> Last30DaysReport:
    return Last30DaysReport.model_validate(
        {
            "topic": "test topic",
            "reddit": [
                {
                    "title": "Post",
                    "url": "https://reddit.com/r/test/1",
                    "subreddit": "test",
                    "date": "2026-01-01",
                    "why_relevant": "test",
                    "score": 10,
                    "comment_insights": [],
                    "engagement": {"score": 10, "num_comments": 4},
                    "top_comments": [{"body": "Same here", "score": 3}],
                }
            ],
            "x": [],
            "web": [],
            "best_practices": ["Update firmware first"],
        }
    )


class TestWriteCacheFiles:
    def test_creates_missing_directory(self, tmp_path, metadata):
        cache_dir = tmp_path / "nested" / "cache"
        write_cache_files(cache_dir, "# Test", metadata, [])
        assert cache_dir.is_dir()

    def test_writes_intel_markdown(self, tmp_path, metadata):
        write_cache_files(tmp_path, "# Community Intel", metadata, [])
        assert (tmp_path / "staged-intel.md").read_text(encoding="utf-8") == "# Community Intel"

    def test_metadata_is_json_with_trailing_newline(self, tmp_path, metadata):
        write_cache_files(tmp_path, "# Test", metadata, [])
        text = (tmp_path / "last-updated.json").read_text(encoding="utf-8")

        assert text.endswith("\n")
        assert json.loads(text)["topics_researched"] == ["topic-a", "topic-b"]
        assert CacheMetadata.model_validate_json(text) == metadata

    def test_writes_all_three_files(self, tmp_path, metadata, report):
        write_cache_files(tmp_path, "# Both", metadata, [report])
        for name in ("staged-intel.md", "staged-raw.json", "last-updated.json"):
            assert (tmp_path / name).exists()

    def test_raw_results_drop_none(self, tmp_path, metadata, report):
        write_cache_files(tmp_path, "# Test", metadata, [report, None])
        raw = json.loads((tmp_path / "staged-raw.json").read_text(encoding="utf-8"))
        assert len(raw) == 1
        assert raw[0]["topic"] == "test topic"

    def test_raw_results_keep_extra_keys(self, tmp_path, metadata, report):
        write_cache_files(tmp_path, "# Test", metadata, [report])
        raw = json.loads((tmp_path / "staged-raw.json").read_text(encoding="utf-8"))
        assert raw[0]["best_practices"] == ["Update firmware first"]
        assert raw[0]["reddit"][0]["engagement"] == {"score": 10, "num_comments": 4}
        assert raw[0]["reddit"][0]["top_comments"][0]["body"] == "Same here"

    def test_writes_content_then_raw_then_metadata(self, tmp_path, metadata, report):
        with patch("intel_cache.storage.write_text_atomic") as mock_write:
            write_cache_files(tmp_path, "# Test", metadata, [report])

        names = [call.args[0].name for call in mock_write.call_args_list]
        assert names == ["staged-intel.md", "staged-raw.json", "last-updated.json"]

    def test_crash_before_metadata_leaves_no_metadata(self, tmp_path, metadata, report):
        real_write = storage.write_text_atomic

        def fail_on_metadata(path, text):
            if path.name == "last-updated.json":
                raise OSError("disk full")
            real_write(path, text)

        with patch("intel_cache.storage.write_text_atomic", side_effect=fail_on_metadata):
            with pytest.raises(OSError):
                write_cache_files(tmp_path, "# Test", metadata, [report])

        assert (tmp_path / "staged-intel.md").exists()
        assert not (tmp_path / "last-updated.json").exists()


class TestWriteBackoffMetadata:
    def test_creates_directory_and_metadata(self, tmp_path, metadata):
        cache_dir = tmp_path / "cache"
        write_backoff_metadata(cache_dir, metadata)
        assert (cache_dir / "last-updated.json").exists()

    def test_does_not_create_intel(self, tmp_path, metadata):
        write_backoff_metadata(tmp_path, metadata)
        assert not (tmp_path / "staged-intel.md").exists()

    def test_preserves_existing_intel(self, tmp_path, metadata):
        intel = tmp_path / "staged-intel.md"
        intel.write_text("# Existing", encoding="utf-8")
        write_backoff_metadata(tmp_path, metadata)
        assert intel.read_text(encoding="utf-8") == "# Existing"


class TestWriteTextAtomic:
    def test_replaces_existing_file(self, tmp_path):
        target = tmp_path / "file.txt"
        target.write_text("old", encoding="utf-8")
        write_text_atomic(target, "new")
        assert target.read_text(encoding="utf-8") == "new"

    def test_leaves_no_temp_files(self, tmp_path):
        write_text_atomic(tmp_path / "file.txt", "content")
        assert [p.name for p in tmp_path.iterdir()] == ["file.txt"]

    @pytest.mark.skipif(os.name == "nt", reason="POSIX permissions")
    def test_mode_follows_umask(self, tmp_path):
        previous = os.umask(0o022)
        try:
            write_text_atomic(tmp_path / "file.txt", "content")
        finally:
            os.umask(previous)
        assert stat.S_IMODE((tmp_path / "file.txt").stat().st_mode) == 0o644


class TestResetCache:
    def test_removes_cache_files_but_not_ledger(self, tmp_path, metadata, report):
        write_cache_files(tmp_path, "# Test", metadata, [report])
        (tmp_path / "reviewed-hashes.json").write_text('{"version": 1, "reviewed": []}')

        removed = reset_cache(tmp_path)

        assert sorted(removed) == ["last-updated.json", "staged-intel.md", "staged-raw.json"]
        assert [p.name for p in tmp_path.iterdir()] == ["reviewed-hashes.json"]

    def test_missing_directory_is_noop(self, tmp_path):
        assert reset_cache(tmp_path / "absent") == []
