"""Error collection and status emission.

Every command ends by printing exactly one JSON line on stdout. Callers are
automated hooks that only read stdout, so failures are reported as data inside
that line rather than through exit codes or stderr.
"""

from __future__ import annotations

import sys
from typing import Optional, TextIO

from intel_cache.models import QueryError, RefreshStatus, StatusReport

#: Longest stderr excerpt kept on a diagnostic.
STDERR_EXCERPT = 300


def record(
    diagnostics: list[QueryError],
    topic: str,
    reason: str,
    stderr: Optional[str] = None,
) -> None:
    """Append a failure to *diagnostics*, trimming any stderr excerpt."""
    excerpt = stderr[:STDERR_EXCERPT] if stderr else None
    diagnostics.append(QueryError(topic=topic, reason=reason, stderr=excerpt))


def build_status(
    status: RefreshStatus,
    diagnostics: list[QueryError],
    detail: Optional[str] = None,
) -> StatusReport:
    """Bundle a status with the diagnostics collected during the run."""
    return StatusReport(
        status=status,
        detail=detail or None,
        errors=list(diagnostics) or None,
    )


def emit_status(report: StatusReport, stream: Optional[TextIO] = None) -> None:
    """Print *report* as a single JSON line, omitting empty fields."""
    stream = stream or sys.stdout
    stream.write(report.model_dump_json(exclude_none=True) + "\n")
    stream.flush()
