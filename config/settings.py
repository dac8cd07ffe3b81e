"""Application settings — process-level configuration loaded from environment variables.

Usage:
    from config.settings import Settings, load_cache_config
    settings = Settings()
    settings.validate()   # raises ValueError if the api backend has no key
    config = load_cache_config(settings.config_path)

Two layers exist: ``Settings`` covers *how* the tool runs (commands, timeouts,
cache location) and ``CacheConfig`` (community-intel.json) covers *what* a
given skill wants researched.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path

from pydantic import ValidationError

from intel_cache.models import CacheConfig


@dataclass
class Settings:
    """Centralised application configuration.

    All values are read from environment variables at instantiation time
    so that tests can override them by patching ``os.environ``.
    """

    # ── Paths ───────────────────────────────────────────────────────────────
    cache_dir: str = field(
        default_factory=lambda: os.environ.get("COMMUNITY_INTEL_CACHE_DIR", "")
    )
    config_path: str = field(
        default_factory=lambda: os.environ.get("COMMUNITY_INTEL_CONFIG", "")
    )

    # ── Gathering ───────────────────────────────────────────────────────────
    #: Command prefix; the topic and flags are appended per query.
    gather_command: str = field(
        default_factory=lambda: os.environ.get(
            "GATHER_COMMAND", "bunx --bun @side-quest/last-30-days"
        )
    )
    query_timeout_seconds: float = field(
        default_factory=lambda: float(os.environ.get("QUERY_TIMEOUT_SECONDS", "60"))
    )

    # ── Synthesis ───────────────────────────────────────────────────────────
    #: "cli" pipes results through ``synthesis_command``; "api" calls Anthropic.
    synthesis_backend: str = field(
        default_factory=lambda: os.environ.get("SYNTHESIS_BACKEND", "cli")
    )
    synthesis_command: str = field(
        default_factory=lambda: os.environ.get("SYNTHESIS_COMMAND", "claude --print")
    )
    synthesis_timeout_seconds: float = field(
        default_factory=lambda: float(os.environ.get("SYNTHESIS_TIMEOUT_SECONDS", "90"))
    )
    anthropic_api_key: str = field(
        default_factory=lambda: os.environ.get("ANTHROPIC_API_KEY", "")
    )
    synthesis_model: str = field(
        default_factory=lambda: os.environ.get("SYNTHESIS_MODEL", "claude-haiku-4-5")
    )

    # ── Flask ───────────────────────────────────────────────────────────────
    debug: bool = field(
        default_factory=lambda: os.environ.get("FLASK_DEBUG", "0") == "1"
    )
    port: int = field(
        default_factory=lambda: int(os.environ.get("PORT", "5001"))
    )

    def validate(self) -> None:
        """Raise ``ValueError`` if the settings cannot work together."""
        if self.synthesis_backend not in ("cli", "api"):
            raise ValueError(
                f"SYNTHESIS_BACKEND must be 'cli' or 'api', got {self.synthesis_backend!r}."
            )
        if self.synthesis_backend == "api" and not self.anthropic_api_key:
            raise ValueError(
                "ANTHROPIC_API_KEY environment variable is not set. "
                "It is required when SYNTHESIS_BACKEND=api."
            )


def load_cache_config(path: str | Path) -> CacheConfig:
    """Load a ``community-intel.json`` file.

    Args:
        path: Path to the JSON config.

    Returns:
        Parsed CacheConfig. An empty ``topics`` list is allowed here; the
        refresh command reports it.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file is not valid JSON or fails validation.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config not found: {config_path}")

    try:
        data = json.loads(config_path.read_text(encoding="utf-8"))
        return CacheConfig.model_validate(data)
    except (json.JSONDecodeError, ValidationError) as exc:
        raise ValueError(f"Invalid config {config_path}: {exc}") from exc
