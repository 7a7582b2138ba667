"""
Prediction fan-out.

The same prompt goes to every configured provider concurrently. A provider
that errors, times out or answers outside the schema is dropped; the
survivors are ranked by historical accuracy and returned without weights.
"""
from __future__ import annotations

import asyncio
from typing import Optional, Sequence, Type

from shared.errors import AllPredictionsInvalid, PredictionInvalid
from shared.models.domain import MatchRecord, RankedPrediction
from shared.utils.logging import get_logger
from shared.utils.metrics import PREDICTION_RESPONSES

from predictor.accuracy import AccuracyTracker
from predictor.prompts import build_prompt
from predictor.providers import PredictionProvider
from predictor.schema import PredictionModel, parse_prediction

logger = get_logger(__name__)


class PredictionFanOut:

    def __init__(
        self,
        providers: Sequence[PredictionProvider],
        tracker: AccuracyTracker,
        model: Type[PredictionModel],
        timeout_s: Optional[float] = None,
    ) -> None:
        self._providers = list(providers)
        self._tracker = tracker
        self._model = model
        self._timeout_s = timeout_s

    async def _ask(self, provider: PredictionProvider, prompt: str) -> Optional[RankedPrediction]:
        name = provider.name.value
        try:
            if self._timeout_s:
                text = await asyncio.wait_for(provider.complete(prompt), timeout=self._timeout_s)
            else:
                text = await provider.complete(prompt)
        except asyncio.TimeoutError:
            PREDICTION_RESPONSES.labels(provider=name, status="timeout").inc()
            logger.warning("prediction_provider_timeout", provider=name)
            return None
        except Exception as exc:
            PREDICTION_RESPONSES.labels(provider=name, status="error").inc()
            logger.warning("prediction_provider_failed", provider=name, error=str(exc))
            return None

        try:
            parsed = parse_prediction(text, self._model)
        except PredictionInvalid as exc:
            PREDICTION_RESPONSES.labels(provider=name, status="invalid").inc()
            logger.warning("prediction_invalid", provider=name, reason=exc.message, details=exc.details)
            return None

        PREDICTION_RESPONSES.labels(provider=name, status="valid").inc()
        return RankedPrediction(provider=provider.name, prediction=parsed.to_response())

    async def predict(self, record: MatchRecord, league: Optional[str] = None) -> list[dict]:
        """
        Ranked predictions, each tagged with its provider.

        Raises:
            AllPredictionsInvalid: no provider produced a schema-valid answer.
        """
        prompt = build_prompt(record, self._model)
        results = await asyncio.gather(*(self._ask(p, prompt) for p in self._providers))
        valid = [r for r in results if r is not None]
        if not valid:
            raise AllPredictionsInvalid(
                "No provider returned a valid prediction",
                {"providers": [p.name.value for p in self._providers]},
            )

        ranked = await self._tracker.rank(valid, league or record.league)
        logger.info(
            "predictions_ranked",
            valid=len(valid),
            total=len(self._providers),
            order=[r.provider.value for r in ranked],
        )
        return [{"provider": r.provider.value, **r.prediction} for r in ranked]
