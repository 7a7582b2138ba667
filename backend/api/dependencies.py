"""
Composition root and dependency injection for the API service.

Every long-lived collaborator (rate limiters, browser manager, accuracy
tracker, provider clients) is built once here and handed to route handlers.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from shared.config import Settings, get_settings
from shared.errors import ConfigurationError
from shared.models.enums import Sport
from shared.utils.http_client import ProviderHTTPClient
from shared.utils.logging import get_logger
from shared.utils.redis_manager import RedisManager

from aggregator.cache import MatchCache
from aggregator.service import MatchAggregator
from aggregator.weather import WeatherService
from predictor.accuracy import AccuracyTracker
from predictor.fanout import PredictionFanOut
from predictor.providers import PredictionProvider, build_providers
from predictor.schema import SCHEMAS
from scraper.basketball import BasketballExtractor
from scraper.browser import BrowserSessionManager
from scraper.config import ScraperSettings, get_scraper_settings
from scraper.fingerprint import UserAgentPool
from scraper.football import FootballExtractor
from scraper.proxy import ProxyRotator
from scraper.rate_limiter import HostRateLimiter, host_for
from scraper.retry import RetryExecutor

logger = get_logger(__name__)


@dataclass
class Services:
    redis: RedisManager
    browser: BrowserSessionManager
    tracker: AccuracyTracker
    aggregators: dict[Sport, MatchAggregator]
    fanouts: dict[Sport, PredictionFanOut]
    http_clients: list[ProviderHTTPClient] = field(default_factory=list)
    providers: list[PredictionProvider] = field(default_factory=list)

    async def start(self) -> None:
        """Start browser and HTTP clients. Redis is connected by the caller."""
        await self.browser.start()
        for client in self.http_clients:
            await client.start()
        for provider in self.providers:
            await provider.start()

    async def stop(self) -> None:
        for provider in self.providers:
            await provider.close()
        for client in self.http_clients:
            await client.close()
        await self.browser.stop()
        await self.redis.disconnect()

    def aggregator(self, sport: Sport) -> MatchAggregator:
        return self.aggregators[sport]

    def fanout(self, sport: Sport) -> PredictionFanOut:
        return self.fanouts[sport]


def build_services(
    settings: Optional[Settings] = None,
    scraper_settings: Optional[ScraperSettings] = None,
) -> Services:
    """Wire the object graph. Nothing connects until ``Services.start()``."""
    settings = settings or get_settings()
    scraper_settings = scraper_settings or get_scraper_settings()

    redis = RedisManager(settings)
    scrape_limiter = HostRateLimiter(
        scraper_settings.rate_limit, scraper_settings.rate_window_s, name="scrape"
    )
    aux_limiter = HostRateLimiter(
        settings.aux_rate_limit, settings.aux_rate_window_ms / 1000.0, name="aux"
    )

    browser = BrowserSessionManager(
        scraper_settings,
        scrape_limiter,
        proxies=ProxyRotator.from_settings(scraper_settings),
        user_agents=UserAgentPool(),
    )
    executor = RetryExecutor.from_settings(browser, scraper_settings)

    geocoder = ProviderHTTPClient(
        "nominatim",
        settings.geocode_base_url,
        rate_limiter=aux_limiter.bind(host_for(settings.geocode_base_url)),
    )
    weather_http = ProviderHTTPClient(
        "openweathermap",
        settings.weather_base_url,
        rate_limiter=aux_limiter.bind(host_for(settings.weather_base_url)),
    )
    weather = WeatherService(geocoder, weather_http, redis, settings)

    extractors = {
        Sport.FOOTBALL: FootballExtractor(executor, scraper_settings),
        Sport.BASKETBALL: BasketballExtractor(executor, scraper_settings),
    }
    aggregators = {
        sport: MatchAggregator(
            extractor, weather, MatchCache(redis, sport, settings.match_ttl_for(sport.value))
        )
        for sport, extractor in extractors.items()
    }

    tracker = AccuracyTracker(
        redis,
        min_league_samples=settings.accuracy_min_league_samples,
        league_multiplier=settings.accuracy_league_multiplier,
    )
    providers = build_providers(settings)
    if not providers:
        logger.warning("no_prediction_providers_configured")
    fanouts = {
        sport: PredictionFanOut(providers, tracker, SCHEMAS[sport], timeout_s=settings.prediction_timeout_s)
        for sport in Sport
    }

    return Services(
        redis=redis,
        browser=browser,
        tracker=tracker,
        aggregators=aggregators,
        fanouts=fanouts,
        http_clients=[geocoder, weather_http],
        providers=providers,
    )


# Module-level singleton, initialized at startup
_services: Services | None = None


def init_dependencies(services: Services) -> None:
    """Initialize the module-level container. Called once at startup."""
    global _services
    _services = services


def get_services() -> Services:
    """FastAPI dependency: returns the shared service container."""
    if _services is None:
        raise ConfigurationError("Services not initialized; call init_dependencies first")
    return _services
