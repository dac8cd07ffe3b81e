"""LLM synthesis of raw research results into structured markdown.

Two backends share one prompt:

1. **cli** (default) — pipes the reports as JSON into ``claude --print``
   (headless mode) with the prompt as its argument.
2. **api** — sends the same prompt and JSON through the Anthropic SDK.

Either way ``Synthesizer.synthesize()`` returns ``None`` on any failure and
the caller falls back to ``formatter.format_markdown``.

The Anthropic client is lazy-initialised so that the class can be
instantiated in tests without requiring a live API key.
"""

from __future__ import annotations

import json
import logging
import subprocess
from collections.abc import Sequence
from typing import TYPE_CHECKING, Optional

from intel_cache.gather import resolve_command, subprocess_env
from intel_cache.models import Last30DaysReport

if TYPE_CHECKING:
    from config.settings import Settings

logger = logging.getLogger(__name__)

#: Title shared by synthesised and raw output.
HEADER = "# Community Intelligence"


def build_prompt(context: str) -> str:
    """Return the synthesis instructions for a given skill *context*."""
    return f"""You are a research synthesizer for a Claude Code plugin skill.

Context: {context}

Below are raw community research results (Reddit, X, web) from the last 30 days.
Synthesize into structured, actionable markdown:

## New Findings
Discoveries, announcements, or changes from the last 30 days.

## Confirmed Workarounds
Solutions that multiple sources confirm work.

## Known Issues
Problems people are actively reporting.

## Emerging Patterns
Trends, shifts in community practice, or early signals.

Rules:
- Deduplicate: same issue across Reddit/X/web = one entry
- Extract the actionable insight, not raw text
- Include source URLs as inline links
- Filter noise: ignore tangential, off-topic, or low-signal results
- If no meaningful findings for a section, omit it entirely
- Keep it concise -- this will be loaded into an LLM context window"""


def reports_payload(reports: Sequence[Optional[Last30DaysReport]]) -> str:
    """Serialise the non-null reports as the JSON handed to the model."""
    data = [r.model_dump(mode="json") for r in reports if r is not None]
    return json.dumps(data, indent=2, ensure_ascii=False)


def with_header(body: str, updated_at: str) -> str:
    """Prefix synthesised markdown with the standard header."""
    return "\n".join([
        HEADER,
        "",
        f"Synthesized by `community-intel-cache` on {updated_at}.",
        "",
        body,
    ])


class Synthesizer:
    """Turns raw reports into markdown using an LLM."""

    def __init__(self, settings: Settings) -> None:
        """Initialise the synthesizer.

        Args:
            settings: Application configuration.
        """
        self.settings = settings
        self._client: object = None  # Lazy-initialised anthropic.Anthropic

    @property
    def client(self) -> object:
        """Lazy-initialise and return the Anthropic SDK client."""
        if self._client is None:
            import anthropic
            self._client = anthropic.Anthropic(
                api_key=self.settings.anthropic_api_key,
                max_retries=2,
                timeout=self.settings.synthesis_timeout_seconds,
            )
        return self._client

    def synthesize(
        self,
        reports: Sequence[Optional[Last30DaysReport]],
        context: str,
    ) -> Optional[str]:
        """Synthesise *reports* for *context*.

        Args:
            reports: Per-topic results; ``None`` entries are skipped.
            context: Skill description steering what counts as signal.

        Returns:
            Trimmed markdown, or ``None`` if synthesis failed or produced
            nothing.
        """
        prompt = build_prompt(context)
        payload = reports_payload(reports)
        logger.info(
            "[synthesize] sending %d bytes via %s backend",
            len(payload), self.settings.synthesis_backend,
        )

        if self.settings.synthesis_backend == "api":
            output = self._synthesize_with_api(prompt, payload)
        else:
            output = self._synthesize_with_cli(prompt, payload)

        if output is None:
            return None
        trimmed = output.strip()
        if not trimmed:
            logger.warning("[synthesize] empty output")
            return None
        return trimmed

    def _synthesize_with_cli(self, prompt: str, payload: str) -> Optional[str]:
        timeout = self.settings.synthesis_timeout_seconds
        try:
            result = subprocess.run(
                [*resolve_command(self.settings.synthesis_command), prompt],
                input=payload,
                capture_output=True,
                text=True,
                timeout=timeout,
                env=subprocess_env(),
            )
        except subprocess.TimeoutExpired:
            logger.warning("[synthesize] timed out after %gs", timeout)
            return None
        except (OSError, ValueError) as exc:
            logger.warning("[synthesize] spawn failed: %s", exc)
            return None

        if result.returncode != 0:
            logger.warning(
                "[synthesize] exit code %d: %s",
                result.returncode, (result.stderr or "")[:300],
            )
            return None
        return result.stdout

    def _synthesize_with_api(self, prompt: str, payload: str) -> Optional[str]:
        try:
            response = self.client.messages.create(
                model=self.settings.synthesis_model,
                max_tokens=4000,
                system=prompt,
                messages=[{"role": "user", "content": payload}],
            )
        except Exception:
            logger.exception("[synthesize] API call failed")
            return None
        return "".join(
            getattr(block, "text", "") for block in response.content
            if getattr(block, "type", None) == "text"
        )
