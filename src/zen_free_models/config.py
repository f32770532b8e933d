"""Environment-driven configuration for the scrape and sync commands."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping

from .llm import DEFAULT_MODEL, LLMConfig, parse_service_tier


LOG_LEVELS = {
    "silent": logging.CRITICAL + 10,
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}

DEFAULT_ZEN_API_URL = "https://opencode.ai/zen/v1/models"
DEFAULT_ZEN_DOCS_URL = "https://opencode.ai/docs/zen/"
DEFAULT_ARTIFACT_URL = "https://api.github.com/repos/VcDoc/zen-free-models/contents/zen-free-models.json"


def parse_log_level(value: str | None) -> str:
    if value and value in LOG_LEVELS:
        return value
    return "info"


def parse_int(value: str | None, default: int) -> int:
    if not value:
        return default
    try:
        return int(value, 10)
    except ValueError:
        return default


@dataclass
class ScraperConfig:
    """Settings for a scrape run. Durations are in milliseconds, as in the environment."""

    zen_api_url: str = DEFAULT_ZEN_API_URL
    zen_docs_url: str = DEFAULT_ZEN_DOCS_URL
    output_path: Path = Path("zen-free-models.json")
    matching_model: str = DEFAULT_MODEL
    llm_service_tier: str = "flex"
    max_retries: int = 3
    initial_delay_ms: int = 1000
    fetch_timeout_ms: int = 30000
    log_level: str = "info"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "ScraperConfig":
        env = os.environ if environ is None else environ
        return cls(
            zen_api_url=env.get("ZEN_API_URL", DEFAULT_ZEN_API_URL),
            zen_docs_url=env.get("ZEN_DOCS_URL", DEFAULT_ZEN_DOCS_URL),
            output_path=Path(env.get("OUTPUT_PATH", "zen-free-models.json")),
            matching_model=env.get("MATCHING_MODEL", DEFAULT_MODEL),
            llm_service_tier=parse_service_tier(env.get("LLM_SERVICE_TIER")),
            max_retries=max(1, parse_int(env.get("MAX_RETRIES"), 3)),
            initial_delay_ms=parse_int(env.get("INITIAL_DELAY_MS"), 1000),
            fetch_timeout_ms=parse_int(env.get("FETCH_TIMEOUT_MS"), 30000),
            log_level=parse_log_level(env.get("LOG_LEVEL")),
        )

    @property
    def fetch_timeout(self) -> float:
        return self.fetch_timeout_ms / 1000

    def llm_config(self, token: str | None = None) -> LLMConfig:
        return LLMConfig(
            token=token,
            model=self.matching_model,
            service_tier=self.llm_service_tier,
            max_retries=self.max_retries,
            initial_delay=self.initial_delay_ms / 1000,
        )


@dataclass
class SyncConfig:
    """Paths and limits for the local sync."""

    cache_dir: Path = field(default_factory=lambda: Path.home() / ".cache" / "zen-free-models")
    target_config: Path = field(default_factory=lambda: Path.home() / ".config" / "opencode" / "opencode.json")
    artifact_url: str = DEFAULT_ARTIFACT_URL
    max_age_seconds: int = 43200
    fetch_timeout: float = 30.0
    lock_attempts: int = 5
    lock_interval: float = 0.5

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "SyncConfig":
        env = os.environ if environ is None else environ
        return cls(
            artifact_url=env.get("ZEN_FREE_MODELS_URL", DEFAULT_ARTIFACT_URL),
            max_age_seconds=parse_int(env.get("ZEN_CACHE_MAX_AGE"), 43200),
        )

    @property
    def cache_file(self) -> Path:
        return self.cache_dir / "models.json"

    @property
    def lock_dir(self) -> Path:
        return self.cache_dir / ".lock"


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=LOG_LEVELS[parse_log_level(level)],
        format="[%(asctime)s] %(levelname)s: %(message)s",
    )
