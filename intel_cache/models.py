"""
Pydantic models shared across the community-intel-cache package.

The ``Last30DaysReport`` family validates the ``--emit=json`` output of the
gathering tool once, at ingestion. Everything else mirrors the JSON files kept
in the cache directory.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

#: Full-success refresh interval in days.
DEFAULT_REFRESH_INTERVAL_DAYS = 30
#: Interval used when fewer than half of the topic queries succeed.
DEFAULT_THIN_CACHE_INTERVAL_DAYS = 7
#: Lookback window handed to the gathering tool.
DEFAULT_DAYS = 7
#: Minimum engagement score for a finding to be kept.
DEFAULT_MIN_SCORE = 25
#: Minimum length of a finding's relevance explanation.
DEFAULT_MIN_SUMMARY_LENGTH = 40

FindingType = Literal["reddit", "x", "web"]
Decision = Literal["accepted", "rejected"]
RefreshStatus = Literal["fresh", "no_cache", "refreshed", "failed", "reset", "reviewed"]
ExtractStatus = Literal["has_new", "no_new", "no_staged"]
#: Engagement score as emitted by the gathering tool; ints stay ints.
Score = Union[int, float]


def _as_utc(value: datetime) -> datetime:
    """Treat naive timestamps as UTC so they compare with aware ones."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# ── Consumer configuration ─────────────────────────────────────────────────


class CacheConfig(BaseModel):
    """Contents of ``community-intel.json``.

    Keys are camelCase on disk (``refreshIntervalDays``) and snake_case in
    Python; either spelling is accepted when constructing the model.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    topics: list[str] = Field(default_factory=list)
    refresh_interval_days: int = Field(default=DEFAULT_REFRESH_INTERVAL_DAYS, ge=0)
    thin_cache_interval_days: int = Field(default=DEFAULT_THIN_CACHE_INTERVAL_DAYS, ge=0)
    #: Skill context for synthesis; topics are used when omitted.
    context: Optional[str] = None
    days: int = Field(default=DEFAULT_DAYS, ge=1, le=365)
    min_score: int = Field(default=DEFAULT_MIN_SCORE, ge=0)
    min_summary_length: int = Field(default=DEFAULT_MIN_SUMMARY_LENGTH, ge=0)


# ── Gathering output ───────────────────────────────────────────────────────


class RedditItem(BaseModel):
    """A Reddit thread surfaced by the gathering tool."""

    model_config = ConfigDict(extra="allow")

    title: str
    url: str
    subreddit: str = ""
    date: Optional[str] = None
    why_relevant: str = ""
    score: Score = 0
    comment_insights: list[str] = Field(default_factory=list)


class XItem(BaseModel):
    """A post on X."""

    model_config = ConfigDict(extra="allow")

    text: str
    url: str
    author_handle: str = ""
    date: Optional[str] = None
    why_relevant: str = ""
    score: Score = 0


class WebItem(BaseModel):
    """A web page. The source provides no date."""

    model_config = ConfigDict(extra="allow")

    title: str
    url: str
    source_domain: str = ""
    snippet: str = ""
    why_relevant: str = ""
    score: Score = 0


class Last30DaysReport(BaseModel):
    """One topic's research result.

    Extra keys (``range``, ``best_practices``, ``context_snippet_md``, …) are
    kept so that re-writing the report to ``staged-raw.json`` is lossless.
    """

    model_config = ConfigDict(extra="allow")

    topic: str
    reddit: list[RedditItem] = Field(default_factory=list)
    x: list[XItem] = Field(default_factory=list)
    web: list[WebItem] = Field(default_factory=list)

    def has_data(self) -> bool:
        """Return True if any source returned at least one item."""
        return len(self.reddit) + len(self.x) + len(self.web) > 0


# ── Cache metadata ─────────────────────────────────────────────────────────


class CacheMetadata(BaseModel):
    """Contents of ``last-updated.json``."""

    last_updated: datetime
    topics_researched: list[str] = Field(default_factory=list)
    next_update_after: datetime

    @field_validator("last_updated", "next_update_after")
    @classmethod
    def _normalise_timezone(cls, value: datetime) -> datetime:
        return _as_utc(value)

    @model_validator(mode="after")
    def _check_order(self) -> CacheMetadata:
        if self.next_update_after < self.last_updated:
            raise ValueError("next_update_after must not precede last_updated")
        return self


# ── Findings and review ────────────────────────────────────────────────────


class Finding(BaseModel):
    """A single reviewable finding, identified by the hash of its URL."""

    model_config = ConfigDict(populate_by_name=True)

    fingerprint: str = Field(alias="hash")
    type: FindingType
    topic: str
    title: str
    summary: str
    url: str
    score: Score
    date: Optional[str] = None


class ReviewedEntry(BaseModel):
    """The latest review decision recorded for one fingerprint."""

    model_config = ConfigDict(populate_by_name=True)

    fingerprint: str = Field(alias="hash")
    decision: Decision
    date: datetime


class ReviewedHashes(BaseModel):
    """Contents of ``reviewed-hashes.json``."""

    version: int = 1
    reviewed: list[ReviewedEntry] = Field(default_factory=list)

    def fingerprints(self) -> set[str]:
        return {entry.fingerprint for entry in self.reviewed}


class ExtractResult(BaseModel):
    """Outcome of the unreviewed-findings query."""

    status: ExtractStatus
    findings: list[Finding] = Field(default_factory=list)


# ── Status reporting ───────────────────────────────────────────────────────


class QueryError(BaseModel):
    """A single failure collected during a run."""

    topic: str
    reason: str
    stderr: Optional[str] = None


class StatusReport(BaseModel):
    """The one JSON line a command prints on stdout."""

    status: RefreshStatus
    detail: Optional[str] = None
    errors: Optional[list[QueryError]] = None
