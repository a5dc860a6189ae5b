"""
Central configuration for the Linewatch service.
Uses pydantic-settings for env-based config with validation.
"""
from __future__ import annotations

import os
from enum import Enum
from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    DEV = "dev"
    STAGING = "staging"
    PRODUCTION = "production"


class Settings(BaseSettings):
    """Root settings for the API process."""

    model_config = SettingsConfigDict(
        env_prefix="LW_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── General ──────────────────────────────────────────────
    environment: Environment = Environment.DEV
    debug: bool = False
    log_level: str = "INFO"
    instance_id: str = Field(default="", description="Pod/container ID bound to every log entry")

    # ── API ──────────────────────────────────────────────────
    api_host: str = "0.0.0.0"
    api_port: int = 3000
    cors_origins: list[str] = ["*"]

    # ── Odds provider (The Odds API) ─────────────────────────
    odds_api_key: str = ""
    odds_base_url: str = "https://api.the-odds-api.com/v4"
    sport_key: str = "basketball_nba"
    odds_regions: str = "us"
    default_bookmaker: str = "draftkings"

    @model_validator(mode="after")
    def use_bare_api_key_fallback(self) -> "Settings":
        """Use ODDS_API_KEY from env when LW_ODDS_API_KEY is not set."""
        if self.odds_api_key:
            return self
        raw = os.environ.get("ODDS_API_KEY", "").strip()
        if raw:
            self.odds_api_key = raw
        return self

    # ── Clock provider (ESPN scoreboard) ─────────────────────
    espn_base_url: str = "https://site.api.espn.com/apis/site/v2/sports"
    espn_path: str = "basketball/nba"

    # ── Throttle ─────────────────────────────────────────────
    cache_ttl_s: float = Field(default=30.0, description="Max age of a cached odds/scores payload")
    window_s: float = Field(default=45.0, description="At most one upstream attempt per window")
    clock_cache_ttl_s: float = 30.0
    clock_window_s: float = 45.0
    coalesce_inflight: bool = Field(
        default=True,
        description="Callers denied a fetch await a pending fetch for the same resource",
    )
    provider_request_timeout_s: float = 10.0

    # ── History ──────────────────────────────────────────────
    history_capacity: int = 2000

    # ── Error reporting ──────────────────────────────────────
    upstream_detail_max_len: int = 500
    error_detail_max_len: int = 200

    # ── Observability ────────────────────────────────────────
    metrics_enabled: bool = True
    metrics_port: int = 9090

    @property
    def odds_url_safe_log(self) -> str:
        """Odds base URL with key presence only, for logging."""
        return f"{self.odds_base_url} (api_key={'set' if self.odds_api_key else 'missing'})"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Singleton access to validated settings."""
    return Settings()
