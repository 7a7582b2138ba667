"""Match record cache over Redis, one key per sport and match key."""
from __future__ import annotations

from typing import Optional

from pydantic import ValidationError

from shared.models.domain import MatchRecord
from shared.models.enums import Sport
from shared.utils.logging import get_logger
from shared.utils.redis_manager import RedisManager, match_key

logger = get_logger(__name__)


class MatchCache:
    """
    get / set-with-TTL / delete for serialized MatchRecords.
    Store failures raise CacheUnavailable; the caller decides whether to degrade.
    """

    def __init__(self, redis: RedisManager, sport: Sport, ttl_s: int) -> None:
        self._redis = redis
        self._sport = sport
        self._ttl_s = ttl_s

    def _key(self, key: str) -> str:
        return match_key(self._sport.value, key)

    async def get(self, key: str) -> Optional[MatchRecord]:
        raw = await self._redis.get_snapshot(self._key(key))
        if raw is None:
            return None
        try:
            return MatchRecord.from_bytes(raw)
        except ValidationError as exc:
            logger.warning("cached_record_undecodable", match_key=key, error=str(exc))
            await self._redis.delete(self._key(key))
            return None

    async def set(self, record: MatchRecord) -> None:
        await self._redis.set_snapshot(self._key(record.key), record.to_bytes(), ttl_s=self._ttl_s)

    async def delete(self, key: str) -> None:
        await self._redis.delete(self._key(key))
