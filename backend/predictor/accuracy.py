"""
Per-provider accuracy counters and accuracy-weighted ranking.

Counters live in one Redis hash per provider (``model:accuracy:{provider}``)
and only ever grow: ``total``/``correct`` plus ``league:{name}:total`` and
``league:{name}:correct``. Updates use HINCRBY inside a transaction.
"""
from __future__ import annotations

from typing import Optional, Sequence

from shared.errors import CacheUnavailable
from shared.models.domain import AccuracyRecord, LeagueAccuracy, RankedPrediction
from shared.models.enums import ProviderName
from shared.utils.logging import get_logger
from shared.utils.redis_manager import RedisManager, accuracy_key

logger = get_logger(__name__)

NEUTRAL_WEIGHT = 1.0
_LEAGUE_PREFIX = "league:"


def _league_fields(league: str) -> tuple[str, str]:
    return f"{_LEAGUE_PREFIX}{league}:total", f"{_LEAGUE_PREFIX}{league}:correct"


def decode_record(provider: ProviderName, raw: dict[str, str]) -> AccuracyRecord:
    per_league: dict[str, LeagueAccuracy] = {}
    for field, value in raw.items():
        if not field.startswith(_LEAGUE_PREFIX):
            continue
        league, _, counter = field[len(_LEAGUE_PREFIX):].rpartition(":")
        entry = per_league.setdefault(league, LeagueAccuracy())
        if counter == "total":
            entry.total = int(value)
        elif counter == "correct":
            entry.correct = int(value)
    return AccuracyRecord(
        provider=provider,
        correct_predictions=int(raw.get("correct", 0)),
        total_predictions=int(raw.get("total", 0)),
        per_league=per_league,
    )


class AccuracyTracker:
    """Reads and updates provider accuracy; computes ranking weights."""

    def __init__(
        self,
        redis: RedisManager,
        min_league_samples: int = 10,
        league_multiplier: float = 2.0,
    ) -> None:
        self._redis = redis
        self._min_league_samples = min_league_samples
        self._league_multiplier = league_multiplier

    async def get(self, provider: ProviderName) -> Optional[AccuracyRecord]:
        raw = await self._redis.hgetall(accuracy_key(provider.value))
        if not raw:
            return None
        return decode_record(provider, raw)

    async def record_outcome(
        self, provider: ProviderName, was_correct: bool, league: Optional[str] = None
    ) -> AccuracyRecord:
        """Count one ground-truth outcome for ``provider``."""
        hit = 1 if was_correct else 0
        increments = {"total": 1, "correct": hit}
        if league:
            total_field, correct_field = _league_fields(league)
            increments[total_field] = 1
            increments[correct_field] = hit
        await self._redis.hincr_many(accuracy_key(provider.value), increments)
        logger.info(
            "accuracy_outcome_recorded", provider=provider.value, correct=was_correct, league=league
        )
        return await self.get(provider) or AccuracyRecord(provider=provider)

    def weight(self, record: Optional[AccuracyRecord], league: Optional[str] = None) -> float:
        """
        League ratio x multiplier once the league has enough samples, else the
        overall ratio, else the neutral weight for a provider with no history.
        """
        if record is None or record.total_predictions == 0:
            return NEUTRAL_WEIGHT
        if league:
            entry = record.per_league.get(league)
            if entry is not None and entry.total >= self._min_league_samples:
                return (entry.correct / entry.total) * self._league_multiplier
        return record.correct_predictions / record.total_predictions

    async def rank(
        self, entries: Sequence[RankedPrediction], league: Optional[str] = None
    ) -> list[RankedPrediction]:
        """Assign weights and sort descending; equal weights keep input order."""
        for entry in entries:
            try:
                record = await self.get(entry.provider)
            except CacheUnavailable as exc:
                logger.warning("accuracy_read_failed", provider=entry.provider.value, error=exc.message)
                record = None
            entry.weight = self.weight(record, league)
        return sorted(entries, key=lambda e: e.weight, reverse=True)
