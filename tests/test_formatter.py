"""Tests for intel_cache/formatter.py — raw markdown fallback."""

from __future__ import annotations

import re

from intel_cache.formatter import NO_ACTIVITY, TOP_N, format_markdown, format_report
from intel_cache.models import Last30DaysReport

UPDATED_AT = "2026-01-15T12:00:00Z"


def make_report(topic: str = "monitor firmware", **sources) -> Last30DaysReport:
    return Last30DaysReport.model_validate({"topic": topic, **sources})


def reddit(i: int, score: int = 50, **overrides) -> dict:
    item = {
        "title": f"Post {i}",
        "url": f"https://reddit.com/r/test/{i}",
        "subreddit": "test",
        "date": "2026-01-10",
        "why_relevant": "Discusses the firmware regression",
        "score": score,
        "comment_insights": [],
    }
    item.update(overrides)
    return item


class TestFormatMarkdown:
    def test_header_and_timestamp(self):
        text = format_markdown([], UPDATED_AT)
        assert text.startswith("# Community Intelligence\n")
        assert f"Raw research results gathered on {UPDATED_AT}." in text

    def test_skips_failed_topics(self):
        text = format_markdown([None, make_report("alpha"), None], UPDATED_AT)
        assert text.count("## ") == 1
        assert "## alpha" in text

    def test_ends_with_single_newline(self):
        text = format_markdown([make_report("alpha")], UPDATED_AT)
        assert text.endswith("\n")
        assert not text.endswith("\n\n")


class TestFormatReport:
    def test_empty_report_says_no_activity(self):
        lines = format_report(make_report("quiet"))
        assert lines[0] == "## quiet"
        assert NO_ACTIVITY in lines

    def test_reddit_sorted_by_score(self):
        report = make_report(reddit=[reddit(1, score=10), reddit(2, score=90)])
        text = "\n".join(format_report(report))

        assert "### Reddit" in text
        assert text.index("[Post 2]") < text.index("[Post 1]")
        assert "(r/test, score 90, 2026-01-10)" in text

    def test_reddit_insights_indented(self):
        report = make_report(reddit=[reddit(1, comment_insights=["insight 1", "insight 2"])])
        lines = format_report(report)
        assert "  - insight 1" in lines
        assert "  - insight 2" in lines

    def test_x_posts_truncated(self):
        long_text = "a" * 200
        report = make_report(
            x=[{"text": long_text, "url": "https://x.com/u/1", "author_handle": "dev", "score": 30}]
        )
        text = "\n".join(format_report(report))

        assert "### X (Twitter)" in text
        assert "a" * 120 + "..." in text
        assert "a" * 121 not in text
        assert "@dev" in text

    def test_web_shows_domain_and_snippet(self):
        report = make_report(
            web=[
                {
                    "title": "Guide",
                    "url": "https://example.com/guide",
                    "source_domain": "example.com",
                    "snippet": "How to fix it",
                }
            ]
        )
        lines = format_report(report)
        assert "### Web" in lines
        assert "- [Guide](https://example.com/guide) (example.com)" in lines
        assert "  How to fix it" in lines

    def test_sources_deduplicated(self):
        report = make_report(
            reddit=[reddit(1)],
            web=[{"title": "Same", "url": "https://reddit.com/r/test/1"}],
        )
        lines = format_report(report)
        sources = lines[lines.index("### Sources") + 1:]
        assert sources.count("- https://reddit.com/r/test/1") == 1

    def test_limits_items_per_source(self):
        report = make_report(reddit=[reddit(i, score=i) for i in range(TOP_N + 3)])
        text = "\n".join(format_report(report))
        assert len(re.findall(r"\[Post \d\]", text)) == TOP_N
        assert "[Post 0]" not in text
