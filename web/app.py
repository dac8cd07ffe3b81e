"""
Flask review API for community-intel-cache.

Routes
──────
GET  /api/status      Is the configured cache fresh? (JSON)
GET  /api/findings    Unreviewed findings (ExtractResult JSON)
POST /api/review      Record a decision: {"hashes": [...], "decision": "accepted"}
POST /api/refresh     Run one refresh cycle: {"force": bool, "no_synthesize": bool}
POST /api/reset       Delete content, raw results and metadata

The cache directory and config path come from ``Settings`` (environment),
read per request so tests can patch ``os.environ``.
"""

from __future__ import annotations

import logging
import os
import sys

from dotenv import load_dotenv
from flask import Flask, jsonify, request

# Allow running as `python web/app.py` from the project root
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

load_dotenv()

from config.settings import Settings
from intel_cache.cache import is_cache_fresh, read_metadata
from intel_cache.commands import RefreshOptions, run_extract, run_refresh, run_reset, run_review
from intel_cache.models import StatusReport

logger = logging.getLogger(__name__)

app = Flask(__name__)


def _report(model, status_code: int = 200):
    return app.response_class(
        model.model_dump_json(by_alias=True, exclude_none=True),
        status=status_code,
        mimetype="application/json",
    )


# ── Status ─────────────────────────────────────────────────────────────────

@app.route("/api/status")
def cache_status():
    """Return freshness and the stored metadata, if any."""
    settings = Settings()
    if not settings.cache_dir:
        return jsonify({"error": "COMMUNITY_INTEL_CACHE_DIR is not set"}), 500

    metadata = read_metadata(settings.cache_dir)
    return jsonify(
        {
            "fresh": is_cache_fresh(settings.cache_dir),
            "metadata": metadata.model_dump(mode="json") if metadata else None,
        }
    )


# ── Review workflow ────────────────────────────────────────────────────────

@app.route("/api/findings")
def list_findings():
    """Return staged findings that have not been reviewed yet."""
    settings = Settings()
    result = run_extract(settings.cache_dir, settings.config_path or None)
    if isinstance(result, StatusReport):
        return _report(result, 500)
    return app.response_class(
        result.model_dump_json(by_alias=True),
        mimetype="application/json",
    )


@app.route("/api/review", methods=["POST"])
def review_findings():
    """Record an accept/reject decision for a batch of finding hashes."""
    body = request.get_json(silent=True) or {}
    hashes = body.get("hashes") or []
    decision = body.get("decision", "accepted")

    if not isinstance(hashes, list) or not all(isinstance(h, str) for h in hashes):
        return jsonify({"error": "hashes must be a list of strings"}), 400
    if decision not in ("accepted", "rejected"):
        return jsonify({"error": "decision must be 'accepted' or 'rejected'"}), 400

    report = run_review(Settings().cache_dir, hashes, decision)
    return _report(report, 200 if report.status == "reviewed" else 400)


# ── Cache maintenance ──────────────────────────────────────────────────────

@app.route("/api/refresh", methods=["POST"])
def refresh_cache():
    """Run a refresh cycle synchronously and return its status report."""
    body = request.get_json(silent=True) or {}
    settings = Settings()
    options = RefreshOptions(
        config_path=settings.config_path,
        cache_dir=settings.cache_dir,
        force=bool(body.get("force", False)),
        no_synthesize=bool(body.get("no_synthesize", False)),
    )
    try:
        report = run_refresh(options, settings=settings)
    except Exception:
        logger.exception("Refresh failed")
        return jsonify({"status": "failed", "detail": "internal error"}), 500
    return _report(report)


@app.route("/api/reset", methods=["POST"])
def reset_cache():
    """Delete the regenerable cache files."""
    return _report(run_reset(Settings().cache_dir))


# ── Entry point ────────────────────────────────────────────────────────────

if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    settings = Settings()
    app.run(debug=settings.debug, host="127.0.0.1", port=settings.port)
