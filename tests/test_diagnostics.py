"""Tests for intel_cache/diagnostics.py"""

from __future__ import annotations

import io
import json

from intel_cache.diagnostics import STDERR_EXCERPT, build_status, emit_status, record


class TestRecord:
    def test_appends_error(self):
        diagnostics = []
        record(diagnostics, "alpha", "exit code 1")
        assert diagnostics[0].topic == "alpha"
        assert diagnostics[0].reason == "exit code 1"
        assert diagnostics[0].stderr is None

    def test_trims_stderr(self):
        diagnostics = []
        record(diagnostics, "alpha", "exit code 1", "x" * 1000)
        assert len(diagnostics[0].stderr) == STDERR_EXCERPT

    def test_empty_stderr_dropped(self):
        diagnostics = []
        record(diagnostics, "alpha", "exit code 1", "")
        assert diagnostics[0].stderr is None


class TestBuildStatus:
    def test_no_errors_omits_field(self):
        report = build_status("fresh", [])
        assert report.errors is None
        assert report.detail is None

    def test_copies_diagnostics(self):
        diagnostics = []
        record(diagnostics, "alpha", "timeout after 60s")
        report = build_status("refreshed", diagnostics, "1/2 topics (interval: 7d)")

        diagnostics.clear()
        assert len(report.errors) == 1
        assert report.detail == "1/2 topics (interval: 7d)"


class TestEmitStatus:
    def test_single_json_line(self):
        stream = io.StringIO()
        emit_status(build_status("fresh", []), stream)

        output = stream.getvalue()
        assert output.endswith("\n")
        assert output.count("\n") == 1
        assert json.loads(output) == {"status": "fresh"}

    def test_includes_errors(self):
        diagnostics = []
        record(diagnostics, "alpha", "exit code 2", "boom")
        stream = io.StringIO()
        emit_status(build_status("failed", diagnostics, "all queries failed, backoff 4h"), stream)

        data = json.loads(stream.getvalue())
        assert data["status"] == "failed"
        assert data["errors"] == [{"topic": "alpha", "reason": "exit code 2", "stderr": "boom"}]

    def test_defaults_to_stdout(self, capsys):
        emit_status(build_status("reset", [], "staged-intel.md"))
        assert json.loads(capsys.readouterr().out)["detail"] == "staged-intel.md"
