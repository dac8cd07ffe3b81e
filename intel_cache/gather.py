"""Parallel research queries via the ``last-30-days`` gathering tool.

Flow
────
1. gather_topics(topics)
     → one subprocess per topic, all started at once on a thread pool
     → results come back in topic order, whatever order they finish in

2. run_query(topic)
     → spawns ``<gather_command> <topic> --emit=json --quick --days=N``
     → ``None`` on spawn failure, timeout or non-zero exit
     → an empty report when stdout is not a valid report (the topic ran
       but contributes no data)

Nothing here raises for a failed topic; each failure becomes a ``QueryError``
in the caller's diagnostics list.
"""

from __future__ import annotations

import json
import logging
import os
import shlex
import shutil
import subprocess
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING, Optional

from pydantic import ValidationError

from intel_cache.diagnostics import record
from intel_cache.models import DEFAULT_DAYS, Last30DaysReport, QueryError

if TYPE_CHECKING:
    from config.settings import Settings

logger = logging.getLogger(__name__)

#: Extra locations searched for tools when the caller's PATH is minimal.
_EXTRA_PATH_DIRS: tuple[str, ...] = (
    "/opt/homebrew/bin",
    "/usr/local/bin",
    os.path.expanduser("~/.bun/bin"),
    os.path.expanduser("~/.local/bin"),
)


def enhanced_path() -> str:
    """Return ``$PATH`` with common tool install locations appended."""
    parts = [p for p in os.environ.get("PATH", "").split(os.pathsep) if p]
    for extra in _EXTRA_PATH_DIRS:
        if extra not in parts:
            parts.append(extra)
    return os.pathsep.join(parts)


def subprocess_env() -> dict[str, str]:
    """Environment for child processes: colour off, widened PATH."""
    return {**os.environ, "NO_COLOR": "1", "PATH": enhanced_path()}


def resolve_command(command: str) -> list[str]:
    """Split *command* and resolve its executable against the widened PATH."""
    argv = shlex.split(command)
    if not argv:
        raise ValueError("Command must not be empty.")
    found = shutil.which(argv[0], path=enhanced_path())
    if found:
        argv[0] = found
    return argv


def empty_report(topic: str) -> Last30DaysReport:
    return Last30DaysReport(topic=topic)


class Gatherer:
    """Runs the gathering tool once per topic.

    The command is resolved lazily so the class can be built in tests without
    the tool being installed.
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    def build_command(self, topic: str, days: int = DEFAULT_DAYS) -> list[str]:
        """Return the argv for one topic query."""
        topic = topic.strip()
        if not topic:
            raise ValueError("Topic must not be empty.")
        return [
            *resolve_command(self.settings.gather_command),
            topic,
            "--emit=json",
            "--quick",
            f"--days={days}",
        ]

    def run_query(
        self,
        topic: str,
        diagnostics: list[QueryError],
        days: int = DEFAULT_DAYS,
    ) -> Optional[Last30DaysReport]:
        """Run one query and return its validated report.

        Args:
            topic: Search query handed to the tool.
            diagnostics: Collector that receives any failure.
            days: Lookback window (1-365).

        Returns:
            The parsed report, an empty report for unusable output, or
            ``None`` if the tool did not complete successfully.
        """
        timeout = self.settings.query_timeout_seconds
        logger.info("[gather] querying: %s", topic)

        try:
            argv = self.build_command(topic, days)
            result = subprocess.run(
                argv,
                capture_output=True,
                text=True,
                timeout=timeout,
                env=subprocess_env(),
                stdin=subprocess.DEVNULL,
            )
        except subprocess.TimeoutExpired:
            record(diagnostics, topic, f"timeout after {timeout:g}s")
            return None
        except (OSError, ValueError) as exc:
            record(diagnostics, topic, f"spawn failed: {exc}")
            return None

        if result.returncode != 0:
            record(diagnostics, topic, f"exit code {result.returncode}", result.stderr)
            return None

        try:
            parsed = json.loads(result.stdout.strip())
        except json.JSONDecodeError:
            record(diagnostics, topic, "stdout was not valid JSON", result.stderr)
            return empty_report(topic)

        try:
            report = Last30DaysReport.model_validate(parsed)
        except ValidationError as exc:
            record(diagnostics, topic, f"invalid report shape: {exc.error_count()} error(s)")
            return empty_report(topic)

        logger.info(
            "[gather] %s: %d reddit, %d x, %d web",
            topic, len(report.reddit), len(report.x), len(report.web),
        )
        return report

    def gather_topics(
        self,
        topics: list[str],
        diagnostics: list[QueryError],
        days: int = DEFAULT_DAYS,
    ) -> list[Optional[Last30DaysReport]]:
        """Query every topic concurrently.

        Returns:
            One entry per topic, in the order of *topics*. ``None`` marks a
            failed query.
        """
        if not topics:
            return []
        with ThreadPoolExecutor(max_workers=len(topics)) as pool:
            return list(pool.map(lambda t: self.run_query(t, diagnostics, days), topics))
