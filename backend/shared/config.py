"""
Central configuration for the Scoreline services.
Uses pydantic-settings for env-based config with validation.
"""
from __future__ import annotations

from enum import Enum
from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DATA_DIR = Path(__file__).resolve().parent.parent / "data"


class Environment(str, Enum):
    DEV = "dev"
    STAGING = "staging"
    PRODUCTION = "production"


class Settings(BaseSettings):
    """Root settings shared by the API and the ingest CLI."""

    model_config = SettingsConfigDict(
        env_prefix="SL_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── General ──────────────────────────────────────────────
    environment: Environment = Environment.DEV
    log_level: str = "INFO"

    # ── Remote source ────────────────────────────────────────
    remote_base_url: str = "https://www.reddit.com"
    remote_info_path: str = "/api/info.json"
    remote_id_prefix: str = "t3_"
    remote_user_agent: str = "scoreline/1.0 (live score scraper)"
    remote_timeout_s: float = Field(default=10.0, gt=0)

    # ── Snapshot cache ───────────────────────────────────────
    cache_path: Path = DATA_DIR / "cache" / "scores.json"
    cache_expiry_s: int = Field(default=60, ge=0)

    # ── Static manifests ─────────────────────────────────────
    schedule_manifest_path: Path = DATA_DIR / "schedule.json"
    live_manifest_path: Path = DATA_DIR / "live.json"
    teams_path: Path = DATA_DIR / "teams.json"
    current_season: int = Field(default=2, ge=1)
    current_week: int = Field(default=1, ge=1)

    # ── API ──────────────────────────────────────────────────
    api_host: str = "0.0.0.0"
    api_port: int = 1212
    cors_origins: list[str] = ["*"]

    # ── Observability ────────────────────────────────────────
    metrics_enabled: bool = True
    metrics_port: int = 9090

    @property
    def remote_info_url(self) -> str:
        return f"{self.remote_base_url.rstrip('/')}{self.remote_info_path}"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Singleton access to validated settings."""
    return Settings()
