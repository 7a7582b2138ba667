"""
Browser-driven acquisition for MatchScout.
Rate-limited, retrying, fingerprint-randomized sessions that turn the betting
site's match pages into typed facts.
"""
from scraper.base import ExtractedMatch, ExtractionState, ExtractionTrace, SiteConfig, SiteExtractor
from scraper.basketball import BasketballExtractor
from scraper.browser import BrowserSession, BrowserSessionManager
from scraper.config import ScraperSettings, get_scraper_settings
from scraper.football import FootballExtractor
from scraper.proxy import ProxyRotator
from scraper.rate_limiter import HostRateLimiter
from scraper.retry import RetryExecutor, RetryRun, RetryState

__all__ = [
    "BasketballExtractor",
    "BrowserSession",
    "BrowserSessionManager",
    "ExtractedMatch",
    "ExtractionState",
    "ExtractionTrace",
    "FootballExtractor",
    "HostRateLimiter",
    "ProxyRotator",
    "RetryExecutor",
    "RetryRun",
    "RetryState",
    "ScraperSettings",
    "SiteConfig",
    "SiteExtractor",
    "get_scraper_settings",
]
