"""
Central configuration for the MatchScout services.
Uses pydantic-settings for env-based config with validation.
"""
from __future__ import annotations

from enum import Enum
from functools import lru_cache
from urllib.parse import urlparse

from pydantic import Field, RedisDsn
from pydantic_settings import BaseSettings, SettingsConfigDict


class Environment(str, Enum):
    DEV = "dev"
    STAGING = "staging"
    PRODUCTION = "production"


class Settings(BaseSettings):
    """Root settings shared across all services."""

    model_config = SettingsConfigDict(
        env_prefix="MS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── General ──────────────────────────────────────────────
    environment: Environment = Environment.DEV
    debug: bool = False
    log_level: str = "INFO"
    instance_id: str = Field(default="", description="Unique pod/container ID for log context")

    # ── Redis ────────────────────────────────────────────────
    redis_url: RedisDsn = Field(default="redis://redis:6379/0")
    redis_max_connections: int = 50

    # ── API ──────────────────────────────────────────────────
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_workers: int = 1
    cors_origins: list[str] = ["*"]

    # ── Cache TTLs (seconds) ─────────────────────────────────
    football_match_ttl_s: int = 60 * 60 * 6
    basketball_match_ttl_s: int = 60 * 60 * 6
    weather_ttl_s: int = 60 * 30

    # ── Auxiliary APIs ───────────────────────────────────────
    aux_rate_limit: int = Field(default=10, description="Requests per window per auxiliary API host")
    aux_rate_window_ms: int = 10_000
    aux_request_timeout_s: float = 10.0
    geocode_base_url: str = "https://nominatim.openstreetmap.org"
    geocode_user_agent: str = "MatchScout/1.0"
    weather_base_url: str = "https://api.openweathermap.org"
    openweather_api_key: str = ""

    # ── Prediction providers ─────────────────────────────────
    prediction_providers: str = Field(
        default="gemini,openai,cohere,anthropic,mistral",
        description="Comma-separated fan-out order; earlier providers win ranking ties.",
    )
    prediction_timeout_s: float = 60.0
    gemini_api_key: str = ""
    gemini_model: str = "gemini-1.5-flash"
    openai_api_key: str = ""
    openai_model: str = "gpt-4o-mini"
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-3-haiku-20240307"
    cohere_api_key: str = ""
    cohere_model: str = "command-r-plus"
    mistral_api_key: str = ""
    mistral_model: str = "mistral-small-latest"

    # ── Accuracy ranking ─────────────────────────────────────
    accuracy_min_league_samples: int = 10
    accuracy_league_multiplier: float = 2.0

    # ── Observability ────────────────────────────────────────
    metrics_enabled: bool = True
    metrics_port: int = 9090

    @property
    def provider_order(self) -> list[str]:
        return [p.strip().lower() for p in self.prediction_providers.split(",") if p.strip()]

    @property
    def redis_url_str(self) -> str:
        return str(self.redis_url)

    @property
    def redis_url_safe_log(self) -> str:
        """URL with password redacted, for logging only."""
        try:
            u = urlparse(str(self.redis_url))
            host = u.hostname or "?"
            netloc = ("***@" if u.password else "") + host + (f":{u.port}" if u.port else "")
            return f"{u.scheme}://{netloc}{u.path}"
        except Exception:
            return "redis://***"

    def match_ttl_for(self, sport: str) -> int:
        """Cache TTL for a merged match record of the given sport."""
        if sport == "basketball":
            return self.basketball_match_ttl_s
        return self.football_match_ttl_s


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Singleton access to validated settings."""
    return Settings()
