"""
api/routes/itinerary.py
------------------------
Itinerary endpoints (prefix /v1/itineraries).

Flow:
  1. POST   /                                         → create (empty days)
  2. POST   /{id}/days/{day_index}/experiences        → add an experience
  3. DELETE /{id}/days/{day_index}/experiences/{eid}  → remove it
  4. POST   /{id}/optimize                            → reorder + re-time (preview=true skips save)
  5. GET    /{id}/conflicts                           → read-only conflict report
  6. GET    /{id}/export/{fmt}                        → json | calendar | share | text

Scheduling failures come back as {"error": <code>, "message": ...}:
409 for schedule clashes, 422 for bad input, 404 for an unknown id.
"""

from __future__ import annotations

from datetime import date as date_type, datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel, Field

from api.dependencies import get_store
from modules.errors import (
    DayCapacityExceeded,
    DuplicateExperience,
    ItineraryNotFound,
    SlotConflict,
    SlotOutsideDay,
    ValidationError,
)
from modules.planning.conflict_detector import summarize
from modules.planning.itinerary_optimizer import UserPreferences
from modules.store import ItineraryStore
from schemas.experience import Experience

router = APIRouter()

_CONFLICT_ERRORS = (DuplicateExperience, DayCapacityExceeded, SlotConflict, SlotOutsideDay)


# ── Request schemas ────────────────────────────────────────────────────────────

class CreateItineraryRequest(BaseModel):
    name: str = ""
    description: str = ""
    start_date: Optional[str] = Field(None, description="ISO-8601 date YYYY-MM-DD")
    end_date:   Optional[str] = Field(None, description="ISO-8601 date YYYY-MM-DD")


class GeoLocationIn(BaseModel):
    latitude:  float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class OperatingHoursIn(BaseModel):
    open_time:  str = "09:00"
    close_time: str = "17:00"
    is_closed:  bool = False
    notes:      str = ""


class ExperienceIn(BaseModel):
    id: str
    name: str = ""
    location: Optional[GeoLocationIn] = None
    rating: float = Field(0.0, ge=0, le=5)
    experience_type: str = ""
    tags: list[str] = Field(default_factory=list)
    operating_hours: dict[str, OperatingHoursIn] = Field(
        default_factory=dict,
        description="Keyed by weekday: 0-6 (Monday=0) or 'monday'..'sunday'",
    )
    admission_fee: Optional[float] = None
    featured: bool = False
    verified: bool = False
    description: str = ""
    address: str = ""

    def to_experience(self) -> Experience:
        try:
            return Experience.from_dict(self.model_dump())
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc


class AddExperienceRequest(BaseModel):
    experience: ExperienceIn
    time_slot: Optional[str] = Field(None, description="ISO-8601 datetime; omit for next free slot")
    duration: Optional[int] = Field(None, gt=0, description="Minutes; default 120")


class OptimizeRequest(BaseModel):
    experience_types: list[str] = Field(default_factory=list)
    preview: bool = False


# ── Helpers ────────────────────────────────────────────────────────────────────

def _parse_date(value: Optional[str], field_name: str) -> Optional[date_type]:
    if value is None:
        return None
    try:
        return date_type.fromisoformat(value)
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=f"Invalid {field_name}: {exc}") from exc


def _raise(error: ValidationError) -> None:
    if isinstance(error, ItineraryNotFound):
        status = 404
    elif isinstance(error, _CONFLICT_ERRORS):
        status = 409
    else:
        status = 422
    raise HTTPException(status_code=status, detail=error.to_dict())


def _not_found(itinerary_id: str) -> None:
    _raise(ItineraryNotFound(f"Itinerary {itinerary_id!r} not found", itinerary_id=itinerary_id))


# ── Lifecycle ──────────────────────────────────────────────────────────────────

@router.post("", status_code=201, summary="Create an itinerary")
def create_itinerary(
    req: CreateItineraryRequest,
    store: ItineraryStore = Depends(get_store),
) -> dict:
    try:
        itinerary = store.create_itinerary(
            name=req.name,
            description=req.description,
            start_date=_parse_date(req.start_date, "start_date"),
            end_date=_parse_date(req.end_date, "end_date"),
        )
    except ValidationError as exc:
        _raise(exc)
    return itinerary.to_dict()


@router.get("", summary="List itineraries")
def list_itineraries(store: ItineraryStore = Depends(get_store)) -> list[dict]:
    return [
        {
            "id": it.id,
            "name": it.name,
            "start_date": it.start_date.isoformat(),
            "end_date": it.end_date.isoformat(),
            "experience_count": it.total_experiences(),
            "estimated_cost": it.estimated_cost(),
        }
        for it in store.list_itineraries()
    ]


@router.get("/current", summary="Currently selected itinerary")
def get_current(store: ItineraryStore = Depends(get_store)) -> dict:
    current = store.current
    if current is None:
        raise HTTPException(status_code=404, detail={"error": "no_current_itinerary",
                                                     "message": "No itinerary selected"})
    return current.to_dict()


@router.get("/{itinerary_id}", summary="Fetch one itinerary")
def get_itinerary(itinerary_id: str, store: ItineraryStore = Depends(get_store)) -> dict:
    itinerary = store.get(itinerary_id)
    if itinerary is None:
        _not_found(itinerary_id)
    return itinerary.to_dict()


@router.delete("/{itinerary_id}", status_code=204, summary="Delete an itinerary")
def delete_itinerary(itinerary_id: str, store: ItineraryStore = Depends(get_store)) -> Response:
    if not store.delete_itinerary(itinerary_id):
        _not_found(itinerary_id)
    return Response(status_code=204)


@router.post("/{itinerary_id}/current", summary="Select the current itinerary")
def set_current(itinerary_id: str, store: ItineraryStore = Depends(get_store)) -> dict:
    if not store.set_current(itinerary_id):
        _not_found(itinerary_id)
    return {"current_itinerary_id": itinerary_id}


# ── Schedule mutations ─────────────────────────────────────────────────────────

@router.post(
    "/{itinerary_id}/days/{day_index}/experiences",
    status_code=201,
    summary="Add an experience to a day",
)
def add_experience(
    itinerary_id: str,
    day_index: int,
    req: AddExperienceRequest,
    store: ItineraryStore = Depends(get_store),
) -> dict:
    time_slot = None
    if req.time_slot:
        try:
            time_slot = datetime.fromisoformat(req.time_slot)
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=f"Invalid time_slot: {exc}") from exc

    result = store.add_experience(
        itinerary_id,
        req.experience.to_experience(),
        day_index=day_index,
        time_slot=time_slot,
        duration=req.duration,
    )
    if not result.success:
        _raise(result.error)
    return result.to_dict()


@router.delete(
    "/{itinerary_id}/days/{day_index}/experiences/{experience_id}",
    summary="Remove an experience from a day",
)
def remove_experience(
    itinerary_id: str,
    day_index: int,
    experience_id: str,
    store: ItineraryStore = Depends(get_store),
) -> dict:
    if store.get(itinerary_id) is None:
        _not_found(itinerary_id)
    removed = store.remove_experience(itinerary_id, experience_id, day_index)
    if not removed:
        raise HTTPException(status_code=404, detail={
            "error": "experience_not_scheduled",
            "message": f"Experience {experience_id!r} is not on day {day_index}",
        })
    return {"removed": True}


@router.post("/{itinerary_id}/optimize", summary="Reorder and re-time every day")
def optimize_itinerary(
    itinerary_id: str,
    req: Optional[OptimizeRequest] = None,
    store: ItineraryStore = Depends(get_store),
) -> dict:
    req = req or OptimizeRequest()
    prefs = UserPreferences(experience_types=req.experience_types)
    if req.preview:
        result = store.preview_optimization(itinerary_id, prefs)
    else:
        result = store.optimize_itinerary(itinerary_id, prefs)
    if not result.success:
        _raise(result.error)
    return {
        "committed": result.committed,
        "itinerary": result.itinerary.to_dict(),
        "conflicts": [c.to_dict() for c in result.conflicts],
    }


# ── Reports ────────────────────────────────────────────────────────────────────

@router.get("/{itinerary_id}/conflicts", summary="Detect scheduling conflicts")
def detect_conflicts(itinerary_id: str, store: ItineraryStore = Depends(get_store)) -> dict:
    try:
        conflicts = store.detect_conflicts(itinerary_id)
    except ValidationError as exc:
        _raise(exc)
    return {
        "summary": summarize(conflicts),
        "conflicts": [c.to_dict() for c in conflicts],
    }


@router.get("/{itinerary_id}/export/{fmt}", summary="Export the itinerary")
def export_itinerary(
    itinerary_id: str,
    fmt: str,
    store: ItineraryStore = Depends(get_store),
) -> Response:
    try:
        artifact = store.export_itinerary(itinerary_id, fmt)
    except ValidationError as exc:
        _raise(exc)
    headers = {}
    if artifact.filename:
        headers["Content-Disposition"] = f'attachment; filename="{artifact.filename}"'
    return Response(content=artifact.content, media_type=artifact.mime_type, headers=headers)
