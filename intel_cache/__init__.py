"""
community-intel-cache package.

Modules
───────
models       — Pydantic data models (CacheConfig, Last30DaysReport, CacheMetadata, Finding, …)
cache        — staleness check, refresh interval policy, backoff metadata
extract      — URL fingerprints, quality filter, finding extraction + dedup, unreviewed query
review       — JSON review ledger (load, record_decisions)
storage      — atomic writes of the cache directory files
gather       — parallel per-topic queries via the last-30-days subprocess
synthesizer  — LLM synthesis (claude CLI or Anthropic API) with None on failure
formatter    — deterministic raw markdown fallback
diagnostics  — QueryError collection and the single JSON status line
commands     — refresh / reset / extract / review, shared by cli and web
cli          — argparse entry point (always exits 0)
"""
