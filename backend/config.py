"""
config.py
---------
Central configuration for the itinerary planner.
Every scheduling constant is a global default read from the environment; the
components accept a PlannerSettings override per call (see schemas/settings.py).
"""

import os
from pathlib import Path

# Load .env from the backend directory (if it exists) so env vars in that file
# are picked up by os.getenv() below.  Won't override vars already set in the shell.
from dotenv import load_dotenv

_env_path = Path(__file__).parent / ".env"
if _env_path.exists():
    load_dotenv(_env_path, override=False)

# ── Planning constraints ──────────────────────────────────────────────────────
MAX_DAYS_PER_ITINERARY: int       = int(os.getenv("MAX_DAYS_PER_ITINERARY",       "14"))
MAX_EXPERIENCES_PER_DAY: int      = int(os.getenv("MAX_EXPERIENCES_PER_DAY",      "8"))
MIN_TIME_BETWEEN_EXPERIENCES: int = int(os.getenv("MIN_TIME_BETWEEN_EXPERIENCES", "30"))   # minutes
DEFAULT_EXPERIENCE_DURATION: int  = int(os.getenv("DEFAULT_EXPERIENCE_DURATION",  "120"))  # minutes
TRAVEL_TIME_BUFFER: int           = int(os.getenv("TRAVEL_TIME_BUFFER",           "15"))   # minutes

# First slot of every day, and the clock origin used by the optimizer
DAY_START_TIME: str = os.getenv("DAY_START_TIME", "09:00")

# Length of a new itinerary when no end date is supplied
DEFAULT_ITINERARY_LENGTH_DAYS: int = int(os.getenv("DEFAULT_ITINERARY_LENGTH_DAYS", "7"))

# ── Optimizer weights ─────────────────────────────────────────────────────────
# Only rating and preferences feed the priority score today; distance and time
# are carried so callers can tune them without a schema change.
OPT_PRIORITIZE_DISTANCE: float    = float(os.getenv("OPT_PRIORITIZE_DISTANCE",    "0.4"))
OPT_PRIORITIZE_TIME: float        = float(os.getenv("OPT_PRIORITIZE_TIME",        "0.3"))
OPT_PRIORITIZE_RATING: float      = float(os.getenv("OPT_PRIORITIZE_RATING",      "0.2"))
OPT_PRIORITIZE_PREFERENCES: float = float(os.getenv("OPT_PRIORITIZE_PREFERENCES", "0.1"))

FEATURED_BONUS: float = float(os.getenv("FEATURED_BONUS", "10"))
VERIFIED_BONUS: float = float(os.getenv("VERIFIED_BONUS", "5"))

# ── Travel modes ──────────────────────────────────────────────────────────────
# Average straight-line speeds (mph). Distances are great-circle miles.
TRAVEL_MODE_SPEEDS_MPH: dict[str, float] = {
    "driving": float(os.getenv("SPEED_DRIVING_MPH", "35")),
    "walking": float(os.getenv("SPEED_WALKING_MPH", "3")),
    "transit": float(os.getenv("SPEED_TRANSIT_MPH", "20")),
    "cycling": float(os.getenv("SPEED_CYCLING_MPH", "12")),
}
DEFAULT_TRAVEL_MODE: str = os.getenv("DEFAULT_TRAVEL_MODE", "driving")
DISTANCE_UNIT: str       = os.getenv("DISTANCE_UNIT", "miles")    # "miles" | "km"

# ── Persistence ───────────────────────────────────────────────────────────────
MEMORY_BACKEND: str       = os.getenv("MEMORY_BACKEND", "in_memory")    # "in_memory" | "redis"
ITINERARY_KEY_PREFIX: str = os.getenv("ITINERARY_KEY_PREFIX", "itinerary")

# ── Redis ─────────────────────────────────────────────────────────────────────
# key schema:
#   {ITINERARY_KEY_PREFIX}:{itinerary_id}  String (JSON record)
#   {ITINERARY_KEY_PREFIX}:index           Set of itinerary ids
REDIS_HOST: str     = os.getenv("REDIS_HOST",     "localhost")
REDIS_PORT: int     = int(os.getenv("REDIS_PORT", "6379"))
REDIS_DB: int       = int(os.getenv("REDIS_DB",   "0"))
REDIS_PASSWORD: str = os.getenv("REDIS_PASSWORD", "")

# ── Observability ─────────────────────────────────────────────────────────────
LOG_LEVEL: str          = os.getenv("LOG_LEVEL", "INFO")
EVENT_LOG_ENABLED: bool = os.getenv("EVENT_LOG_ENABLED", "false").lower() in ("1", "true", "yes")
EVENT_LOG_DIR: str      = os.getenv("EVENT_LOG_DIR", "")   # empty = backend/logs

# ── Export ────────────────────────────────────────────────────────────────────
SHARE_BASE_URL: str = os.getenv("SHARE_BASE_URL", "http://localhost:3000/itinerary")
