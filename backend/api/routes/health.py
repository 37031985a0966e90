"""
api/routes/health.py
--------------------
Health-check endpoint — used by load balancers, Docker health probes, etc.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends

from api.dependencies import get_store
from modules.store import ItineraryStore

router = APIRouter()


@router.get("/health", summary="Health check")
def health(store: ItineraryStore = Depends(get_store)) -> dict:
    """Returns 200 OK when the service is running."""
    return {
        "status": "ok",
        "service": "itinerary-planner",
        "itineraries": len(store.list_itineraries()),
    }
