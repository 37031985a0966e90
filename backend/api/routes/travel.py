"""
api/routes/travel.py
--------------------
Straight-line travel estimate between two experiences (prefix /v1).
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from api.dependencies import get_store
from api.routes.itinerary import ExperienceIn
from modules.errors import ValidationError
from modules.store import ItineraryStore

router = APIRouter()


class TravelTimeRequest(BaseModel):
    from_experience: ExperienceIn
    to_experience: ExperienceIn
    mode: Optional[str] = None


@router.post("/travel-time", summary="Estimate travel between two experiences")
def travel_time(req: TravelTimeRequest, store: ItineraryStore = Depends(get_store)) -> dict:
    tool = store.detector.travel_tool
    try:
        estimate = tool.travel_time(
            req.from_experience.to_experience(),
            req.to_experience.to_experience(),
            req.mode,
        )
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=exc.to_dict()) from exc
    return estimate.to_dict()
