"""
Strict prediction schemas.

Provider output is stripped of code fences, parsed as JSON and validated.
Numeric fields must be JSON numbers. A response whose win percentages do
not sum to 100 is rejected, never renormalized.
"""
from __future__ import annotations

import json
import math
import re
from typing import Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from shared.errors import PredictionInvalid
from shared.models.enums import HalfTimeWinner, Sport

P = TypeVar("P", bound="PredictionModel")

_FENCE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)
_SUM_TOLERANCE = 1e-6


def strip_code_fences(text: str) -> str:
    """Remove a surrounding ```json ... ``` block."""
    return _FENCE.sub("", (text or "").strip()).strip()


class PredictedScore(BaseModel):
    home: int = Field(ge=0, strict=True)
    away: int = Field(ge=0, strict=True)


class PredictionModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    home_win_pct: float = Field(alias="homeTeamWinPercentage", ge=0, le=100, strict=True)
    away_win_pct: float = Field(alias="awayTeamWinPercentage", ge=0, le=100, strict=True)
    predicted_score: PredictedScore = Field(alias="predictedScore")
    confidence: float = Field(alias="predictionConfidence", ge=0, le=100, strict=True)
    brief_comment: str = Field(alias="briefComment", min_length=1)

    def win_total(self) -> float:
        return self.home_win_pct + self.away_win_pct

    @model_validator(mode="after")
    def _check_win_total(self):
        total = self.win_total()
        if not math.isclose(total, 100.0, abs_tol=_SUM_TOLERANCE):
            raise ValueError(f"win percentages sum to {total}, expected 100")
        return self

    def to_response(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


class BasketballPrediction(PredictionModel):
    """Two-way outcome; home + away = 100."""


class FootballPrediction(PredictionModel):
    """Three-way outcome; home + away + draw = 100."""

    draw_pct: float = Field(alias="drawPercentage", ge=0, le=100, strict=True)
    over_2_5_pct: float = Field(alias="over2_5Percentage", ge=0, le=100, strict=True)
    both_teams_score_pct: float = Field(alias="bothTeamScorePercentage", ge=0, le=100, strict=True)
    half_time_winner: HalfTimeWinner = Field(alias="halfTimeWinner")
    half_time_winner_pct: float = Field(alias="halfTimeWinnerPercentage", ge=0, le=100, strict=True)

    def win_total(self) -> float:
        return self.home_win_pct + self.away_win_pct + self.draw_pct


SCHEMAS: dict[Sport, Type[PredictionModel]] = {
    Sport.FOOTBALL: FootballPrediction,
    Sport.BASKETBALL: BasketballPrediction,
}


def parse_prediction(text: str, model: Type[P]) -> P:
    """
    Parse raw provider text into ``model``.

    Raises:
        PredictionInvalid: not JSON, or the JSON violates the schema.
    """
    cleaned = strip_code_fences(text)
    try:
        payload = json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise PredictionInvalid("Response is not valid JSON", {"error": str(exc)}) from exc
    if not isinstance(payload, dict):
        raise PredictionInvalid("Response is not a JSON object")
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        errors = exc.errors(include_url=False, include_context=False, include_input=False)
        raise PredictionInvalid("Response failed schema validation", {"errors": errors}) from exc
