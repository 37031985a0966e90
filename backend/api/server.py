"""
api/server.py
-------------
FastAPI application entry point.

Run dev server:
    cd backend
    uvicorn api.server:app --reload --port 8000

Endpoints:
    GET    /v1/health
    POST   /v1/itineraries
    GET    /v1/itineraries
    GET    /v1/itineraries/current
    GET    /v1/itineraries/{id}
    DELETE /v1/itineraries/{id}
    POST   /v1/itineraries/{id}/current
    POST   /v1/itineraries/{id}/days/{day_index}/experiences
    DELETE /v1/itineraries/{id}/days/{day_index}/experiences/{experience_id}
    POST   /v1/itineraries/{id}/optimize
    GET    /v1/itineraries/{id}/conflicts
    GET    /v1/itineraries/{id}/export/{fmt}
    POST   /v1/travel-time
"""
from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

import config
from api.routes import health, itinerary, travel

logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(
    title="Itinerary Planner API",
    version="1.0.0",
    description=(
        "Multi-day itinerary scheduling: conflict-free slot allocation, "
        "travel-time estimates, conflict reports and route optimization."
    ),
    docs_url="/docs",
    redoc_url="/redoc",
)

# Allow the web frontend (any origin during development)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router,     prefix="/v1",             tags=["Health"])
app.include_router(itinerary.router,  prefix="/v1/itineraries", tags=["Itineraries"])
app.include_router(travel.router,     prefix="/v1",             tags=["Travel"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("api.server:app", host="0.0.0.0", port=8000, reload=True)
