"""
Provider accuracy endpoints.

POST /v1/accuracy/outcomes     - Record a ground-truth outcome for one provider.
GET  /v1/accuracy/{provider}   - Current counters for a provider.
"""
from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from shared.models.domain import AccuracyRecord
from shared.models.enums import ProviderName

from api.dependencies import Services, get_services

router = APIRouter(prefix="/v1/accuracy", tags=["accuracy"])


class OutcomeRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    provider: ProviderName
    was_correct: bool = Field(alias="wasCorrect")
    league: Optional[str] = Field(default=None, max_length=120)


@router.post("/outcomes")
async def record_outcome(
    body: OutcomeRequest,
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    record = await services.tracker.record_outcome(body.provider, body.was_correct, body.league)
    return record.model_dump(mode="json")


@router.get("/{provider}")
async def get_accuracy(
    provider: ProviderName,
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    record = await services.tracker.get(provider) or AccuracyRecord(provider=provider)
    return record.model_dump(mode="json")
