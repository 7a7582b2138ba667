"""
Venue weather lookup: Nominatim geocoding then OpenWeatherMap current conditions.
Any failure yields the default snapshot; weather never fails a match build.
"""
from __future__ import annotations

from typing import Optional

import httpx
from pydantic import BaseModel, Field, ValidationError

from shared.config import Settings, get_settings
from shared.errors import CacheUnavailable
from shared.models.domain import WeatherSnapshot
from shared.utils.http_client import ProviderHTTPClient
from shared.utils.logging import get_logger
from shared.utils.redis_manager import RedisManager, weather_key

logger = get_logger(__name__)


# ── Upstream payload schema ─────────────────────────────────────────────
class _Main(BaseModel):
    temp: float
    humidity: float


class _Condition(BaseModel):
    description: str


class _Wind(BaseModel):
    speed: float


class OpenWeatherPayload(BaseModel):
    main: _Main
    weather: list[_Condition] = Field(min_length=1)
    wind: _Wind

    def to_snapshot(self) -> WeatherSnapshot:
        return WeatherSnapshot(
            temperature=self.main.temp,
            condition=self.weather[0].description,
            humidity=self.main.humidity,
            wind_speed=self.wind.speed,
        )


class WeatherService:
    """Geocodes a venue name and fetches its current weather."""

    def __init__(
        self,
        geocoder: ProviderHTTPClient,
        weather: ProviderHTTPClient,
        redis: Optional[RedisManager] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._geocoder = geocoder
        self._weather = weather
        self._redis = redis

    async def geocode(self, name: str) -> Optional[tuple[float, float]]:
        """First Nominatim hit for ``name`` as (lat, lon), or None."""
        resp = await self._geocoder.get(
            "/search",
            params={"q": name, "format": "json", "limit": 1},
            extra_headers={"User-Agent": self._settings.geocode_user_agent},
        )
        results = resp.json()
        if not results or not isinstance(results, list):
            return None
        first = results[0]
        if not isinstance(first, dict) or not first.get("lat") or not first.get("lon"):
            return None
        return float(first["lat"]), float(first["lon"])

    async def fetch_weather(self, lat: float, lon: float) -> WeatherSnapshot:
        resp = await self._weather.get(
            "/data/2.5/weather",
            params={
                "lat": lat,
                "lon": lon,
                "appid": self._settings.openweather_api_key,
                "units": "metric",
            },
        )
        return OpenWeatherPayload.model_validate(resp.json()).to_snapshot()

    async def _cached(self, venue: str) -> Optional[WeatherSnapshot]:
        if self._redis is None:
            return None
        try:
            raw = await self._redis.get_snapshot(weather_key(venue))
        except CacheUnavailable:
            return None
        if not raw:
            return None
        try:
            return WeatherSnapshot.model_validate_json(raw)
        except ValidationError:
            return None

    async def _store(self, venue: str, snapshot: WeatherSnapshot) -> None:
        if self._redis is None:
            return
        try:
            await self._redis.set_snapshot(
                weather_key(venue), snapshot.model_dump_json(), ttl_s=self._settings.weather_ttl_s
            )
        except CacheUnavailable as exc:
            logger.warning("weather_cache_write_failed", venue=venue, error=exc.message)

    async def get_weather(self, venue: str) -> WeatherSnapshot:
        """Current weather at ``venue``; the default snapshot on any failure."""
        if not venue or not venue.strip():
            return WeatherSnapshot.default()

        cached = await self._cached(venue)
        if cached is not None:
            return cached

        try:
            location = await self.geocode(venue)
            if location is None:
                logger.info("venue_not_geocoded", venue=venue)
                return WeatherSnapshot.default()
            snapshot = await self.fetch_weather(*location)
        except (httpx.HTTPError, ValidationError, ValueError, TypeError, KeyError) as exc:
            logger.warning("weather_lookup_failed", venue=venue, error=str(exc))
            return WeatherSnapshot.default()

        await self._store(venue, snapshot)
        return snapshot
