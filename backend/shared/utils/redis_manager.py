"""
Redis connection manager for MatchScout.
Provides the async connection pool, snapshot/hash helpers, and key namespace utilities.

Every redis error is re-raised as CacheUnavailable so callers can decide
between degrading (cache reads) and surfacing (accuracy updates).
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Mapping, Optional

import redis.asyncio as aioredis
from redis.asyncio import Redis
from redis.exceptions import RedisError

from shared.config import Settings, get_settings
from shared.errors import CacheUnavailable
from shared.utils.logging import get_logger

logger = get_logger(__name__)

# ── Key namespaces ──────────────────────────────────────────────────────
MATCH_KEY = "match:{sport}:{match_key}"
WEATHER_KEY = "weather:{venue}"
ACCURACY_KEY = "model:accuracy:{provider}"


def _fmt(template: str, **kwargs: Any) -> str:
    return template.format(**kwargs)


def match_key(sport: str, key: str) -> str:
    return _fmt(MATCH_KEY, sport=sport, match_key=key)


def weather_key(venue: str) -> str:
    return _fmt(WEATHER_KEY, venue=venue.strip().lower())


def accuracy_key(provider: str) -> str:
    return _fmt(ACCURACY_KEY, provider=provider)


class RedisManager:
    """Manages async Redis connection pool and provides typed helpers."""

    def __init__(self, settings: Settings | None = None, client: Optional[Redis] = None) -> None:
        self._settings = settings or get_settings()
        self._pool: Optional[Redis] = client

    async def connect(self) -> None:
        """Initialize the connection pool."""
        self._pool = aioredis.from_url(
            self._settings.redis_url_str,
            max_connections=self._settings.redis_max_connections,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_keepalive=True,
            retry_on_timeout=True,
        )
        async with self._guard("ping"):
            await self._pool.ping()
        logger.info("redis_connected", url=self._settings.redis_url_safe_log)

    async def disconnect(self) -> None:
        """Graceful shutdown."""
        if self._pool:
            await self._pool.aclose()
            self._pool = None
            logger.info("redis_disconnected")

    @property
    def client(self) -> Redis:
        if self._pool is None:
            raise CacheUnavailable("RedisManager not connected. Call connect() first.")
        return self._pool

    @asynccontextmanager
    async def _guard(self, op: str) -> AsyncIterator[None]:
        try:
            yield
        except RedisError as exc:
            logger.warning("redis_operation_failed", op=op, error=str(exc))
            raise CacheUnavailable(f"Redis {op} failed", {"error": str(exc)}) from exc

    async def ping(self) -> bool:
        async with self._guard("ping"):
            return bool(await self.client.ping())

    # ── Snapshot helpers ────────────────────────────────────────────────
    async def set_snapshot(self, key: str, data: str | bytes, ttl_s: int = 300) -> None:
        """Store a serialized snapshot with TTL."""
        async with self._guard("set"):
            await self.client.set(key, data, ex=ttl_s)

    async def get_snapshot(self, key: str) -> Optional[str]:
        """Retrieve a serialized snapshot, or None when absent/expired."""
        async with self._guard("get"):
            return await self.client.get(key)

    async def delete(self, key: str) -> int:
        async with self._guard("delete"):
            return int(await self.client.delete(key))

    # ── Hash counters ───────────────────────────────────────────────────
    async def hincr_many(self, key: str, increments: Mapping[str, int]) -> list[int]:
        """Atomically apply several HINCRBY operations in one transaction."""
        async with self._guard("hincrby"):
            pipe = self.client.pipeline(transaction=True)
            for field, amount in increments.items():
                pipe.hincrby(key, field, amount)
            results = await pipe.execute()
        return [int(r) for r in results]

    async def hgetall(self, key: str) -> dict[str, str]:
        async with self._guard("hgetall"):
            return await self.client.hgetall(key)
