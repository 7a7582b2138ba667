"""
Prediction endpoints.

POST /v1/football/predictions   - Build (or load) the match record and rank provider predictions.
POST /v1/basketball/predictions - Same for basketball.
"""
from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from shared.models.enums import Sport
from shared.utils.logging import get_logger

from api.dependencies import Services, get_services

logger = get_logger(__name__)
router = APIRouter(prefix="/v1", tags=["predictions"])


class PredictionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    home_team: str = Field(alias="homeTeam", min_length=1, max_length=120)
    away_team: str = Field(alias="awayTeam", min_length=1, max_length=120)
    league: Optional[str] = Field(default=None, max_length=120)


async def _predict(services: Services, sport: Sport, body: PredictionRequest) -> dict[str, Any]:
    record = await services.aggregator(sport).get_or_build(body.home_team, body.away_team, body.league)
    predictions = await services.fanout(sport).predict(record, body.league)
    return {
        "match": record.model_dump(mode="json"),
        "predictions": predictions,
    }


@router.post("/football/predictions")
async def football_predictions(
    body: PredictionRequest,
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    return await _predict(services, Sport.FOOTBALL, body)


@router.post("/basketball/predictions")
async def basketball_predictions(
    body: PredictionRequest,
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    return await _predict(services, Sport.BASKETBALL, body)
