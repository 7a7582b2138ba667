"""
Scraper configuration.
Uses MS_SCRAPER_ prefix; browser, retry, rate-limit and scroll tuning live here.
"""
from __future__ import annotations

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ScraperSettings(BaseSettings):
    """Scraper-specific settings; use get_settings() for Redis and TTLs."""

    model_config = SettingsConfigDict(
        env_prefix="MS_SCRAPER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Rate limiting (per destination host)
    rate_limit: int = Field(default=5, description="Max requests per window per host")
    rate_window_ms: int = Field(default=10_000, description="Window length in milliseconds")

    # Retries
    retry_max_attempts: int = Field(default=3, description="Attempts per browser operation")
    retry_delay_ms: int = Field(default=1000, description="Fixed delay between attempts")

    # Proxies
    use_proxy: bool = False
    proxy_list: str = Field(default="", description="Comma-separated host:port[:user:pass[:protocol]]")

    # Timeouts
    navigation_timeout_ms: int = 60_000
    element_timeout_ms: int = 30_000

    # Listing search
    max_scroll_attempts: int = Field(default=20, description="Unchanged-height scrolls before giving up")
    max_scroll_steps: int = Field(default=200, description="Total scrolls per search, growing or not")
    scroll_step_px: int = 300
    scroll_delay_ms: int = 500

    # Anti-detection
    anti_bot_grace_ms: int = Field(default=5000, description="Wait for a challenge page to clear")
    human_delay_min_ms: int = 500
    human_delay_max_ms: int = 1000
    tab_settle_ms: int = Field(default=1000, description="Pause after switching an in-page tab")

    # Browser
    headless: bool = True
    chromium_executable_path: Optional[str] = None
    debug_screenshots: bool = False
    screenshot_dir: str = "/tmp/matchscout-screenshots"

    @property
    def rate_window_s(self) -> float:
        return self.rate_window_ms / 1000.0

    @property
    def retry_delay_s(self) -> float:
        return self.retry_delay_ms / 1000.0


def get_scraper_settings() -> ScraperSettings:
    """Load scraper settings."""
    return ScraperSettings()
