"""
Cache-aside match aggregation.

get_or_build: cache hit returns the stored record untouched; a miss scrapes
the site while the weather lookup runs alongside, merges both into a
MatchRecord, and writes it back on a best-effort basis.
"""
from __future__ import annotations

from typing import Optional

from shared.errors import CacheUnavailable
from shared.models.domain import MatchRecord, WeatherSnapshot, make_match_key
from shared.utils.logging import bound_match_context, get_logger
from shared.utils.metrics import (
    CACHE_LOOKUPS,
    CACHE_WRITE_FAILURES,
    MATCH_BUILD_SECONDS,
    atrack_latency,
)

from scraper.base import ExtractedMatch, SiteExtractor

from aggregator.cache import MatchCache
from aggregator.weather import WeatherService

logger = get_logger(__name__)


class MatchAggregator:
    """
    One build attempt per call. Concurrent misses for the same key may both
    scrape; the write is an idempotent upsert keyed by match key.
    """

    def __init__(self, extractor: SiteExtractor, weather: WeatherService, cache: MatchCache) -> None:
        self._extractor = extractor
        self._weather = weather
        self._cache = cache
        self.sport = extractor.sport

    async def _lookup(self, key: str) -> Optional[MatchRecord]:
        try:
            record = await self._cache.get(key)
        except CacheUnavailable as exc:
            logger.warning("cache_read_failed", error=exc.message)
            CACHE_LOOKUPS.labels(sport=self.sport.value, result="error").inc()
            return None
        CACHE_LOOKUPS.labels(sport=self.sport.value, result="hit" if record else "miss").inc()
        return record

    async def _store(self, record: MatchRecord) -> None:
        try:
            await self._cache.set(record)
        except CacheUnavailable as exc:
            CACHE_WRITE_FAILURES.labels(sport=self.sport.value).inc()
            logger.warning("cache_write_failed", error=exc.message)

    def _merge(
        self,
        key: str,
        home_team: str,
        away_team: str,
        league: Optional[str],
        extracted: ExtractedMatch,
    ) -> MatchRecord:
        weather = extracted.venue_result
        if not isinstance(weather, WeatherSnapshot):
            weather = WeatherSnapshot.default()
        return MatchRecord(
            key=key,
            sport=self.sport,
            home_team=home_team,
            away_team=away_team,
            league=league,
            venue=extracted.venue,
            unavailable_players=extracted.unavailable_players,
            recent_results=extracted.recent_results,
            lineups=extracted.lineups,
            standings=extracted.standings,
            weather=weather,
        )

    async def get_or_build(
        self, home_team: str, away_team: str, league: Optional[str] = None
    ) -> MatchRecord:
        """
        Return the cached record for the fixture or build a fresh one.

        Raises:
            MatchNotFound: the fixture is not on the site's listing.
            ScrapingFailed: the search stage exhausted its retries.
        """
        key = make_match_key(home_team, away_team)
        with bound_match_context(key, self.sport.value):
            cached = await self._lookup(key)
            if cached is not None:
                logger.info("match_cache_hit")
                return cached

            logger.info("match_cache_miss")
            async with atrack_latency(MATCH_BUILD_SECONDS, sport=self.sport.value):
                extracted = await self._extractor.extract(
                    home_team.strip(), away_team.strip(), on_venue=self._weather.get_weather
                )
            record = self._merge(key, home_team.strip(), away_team.strip(), league, extracted)
            await self._store(record)
            logger.info("match_record_built", venue=record.venue, degraded=extracted.degraded)
            return record
