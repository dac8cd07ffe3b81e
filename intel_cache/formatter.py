"""Deterministic markdown rendering of raw research results.

Used when synthesis is disabled (``--no-synthesize``) or fails. Each topic
gets a section listing its top ``TOP_N`` items per source, highest score
first, followed by the URLs it cites.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Optional

from intel_cache.extract import preview
from intel_cache.models import Last30DaysReport
from intel_cache.synthesizer import HEADER

#: Items shown per source type and topic.
TOP_N = 5

NO_ACTIVITY = "No significant community activity found."


def _top(items: list, n: int = TOP_N) -> list:
    return sorted(items, key=lambda item: item.score, reverse=True)[:n]


def format_report(report: Last30DaysReport) -> list[str]:
    """Render one topic section as a list of lines."""
    lines = [f"## {report.topic}", ""]
    if not report.has_data():
        return lines + [NO_ACTIVITY, ""]

    urls: list[str] = []

    reddit = _top(report.reddit)
    if reddit:
        lines.append("### Reddit")
        for item in reddit:
            subreddit = f"r/{item.subreddit}" if item.subreddit else ""
            meta = ", ".join(filter(None, [subreddit, f"score {item.score}", item.date or ""]))
            lines.append(f"- [{item.title}]({item.url}) ({meta})")
            if item.why_relevant:
                lines.append(f"  {item.why_relevant}")
            lines.extend(f"  - {insight}" for insight in item.comment_insights)
            urls.append(item.url)
        lines.append("")

    posts = _top(report.x)
    if posts:
        lines.append("### X (Twitter)")
        for item in posts:
            handle = f"@{item.author_handle.lstrip('@')}" if item.author_handle else ""
            meta = ", ".join(filter(None, [handle, f"score {item.score}", item.date or ""]))
            lines.append(f"- [{preview(item.text)}]({item.url}) ({meta})")
            if item.why_relevant:
                lines.append(f"  {item.why_relevant}")
            urls.append(item.url)
        lines.append("")

    web = _top(report.web)
    if web:
        lines.append("### Web")
        for item in web:
            domain = f" ({item.source_domain})" if item.source_domain else ""
            lines.append(f"- [{item.title}]({item.url}){domain}")
            if item.snippet:
                lines.append(f"  {item.snippet}")
            urls.append(item.url)
        lines.append("")

    lines.append("### Sources")
    lines.extend(f"- {url}" for url in dict.fromkeys(urls))
    lines.append("")
    return lines


def format_markdown(reports: Sequence[Optional[Last30DaysReport]], updated_at: str) -> str:
    """Render all non-null *reports* under the standard header.

    Args:
        reports: Per-topic results; ``None`` entries (failed topics) are skipped.
        updated_at: ISO timestamp shown in the header.
    """
    lines = [HEADER, "", f"Raw research results gathered on {updated_at}.", ""]
    for report in reports:
        if report is None:
            continue
        lines.extend(format_report(report))
    return "\n".join(lines).rstrip() + "\n"
