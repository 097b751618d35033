"""Central configuration for the territory engine.

All values are constants imported by the rest of the package. Each one can be
overridden through an environment variable of the same name (optionally via a
local `.env`). Components take keyword overrides that default to these values,
so tests and host applications can tune them without touching the algorithms.
"""

from __future__ import annotations

import importlib
import os


def _env_float(key: str, default: float) -> float:
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _env_int(key: str, default: int) -> int:
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _env_bool(key: str, default: bool) -> bool:
    value = os.getenv(key)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


# Load .env variables when python-dotenv is available.
_load_dotenv = None
try:
    _dotenv_mod = importlib.import_module("dotenv")
    _load_dotenv = getattr(_dotenv_mod, "load_dotenv", None)
except Exception:
    _load_dotenv = None

if callable(_load_dotenv):
    # Load .env from the current directory or any parent folder.
    _load_dotenv()


# ---------------------------------------------------------------------------
# Geometry
# ---------------------------------------------------------------------------
# Mean Earth radius (metres) used by the haversine distance and polygon area.
EARTH_RADIUS_M = 6_371_000.0


# ---------------------------------------------------------------------------
# Path tracking (territory claims)
# ---------------------------------------------------------------------------
# A new point is only recorded once the user moved further than this (metres).
MIN_DISTANCE_FOR_NEW_POINT_M = _env_float("MIN_DISTANCE_FOR_NEW_POINT_M", 10.0)

# Above the soft limit the point is kept but a warning is raised; above the
# hard limit the point is dropped and tracking is aborted.
SPEED_WARNING_KMH = _env_float("SPEED_WARNING_KMH", 15.0)
SPEED_LIMIT_KMH = _env_float("SPEED_LIMIT_KMH", 30.0)

# The loop counts as closed when the last point is this close to the start.
CLOSURE_DISTANCE_THRESHOLD_M = _env_float("CLOSURE_DISTANCE_THRESHOLD_M", 30.0)

# Validation minimums applied to a finished path.
MIN_PATH_POINTS = _env_int("MIN_PATH_POINTS", 10)
MIN_TOTAL_DISTANCE_M = _env_float("MIN_TOTAL_DISTANCE_M", 50.0)
MIN_ENCLOSED_AREA_M2 = _env_float("MIN_ENCLOSED_AREA_M2", 100.0)

# Segments at each end of the path excluded from mutual self-intersection
# comparison (the closing seam always touches near the start).
SELF_INTERSECTION_SKIP_HEAD = _env_int("SELF_INTERSECTION_SKIP_HEAD", 2)
SELF_INTERSECTION_SKIP_TAIL = _env_int("SELF_INTERSECTION_SKIP_TAIL", 2)

# Poll interval (seconds) for recording path points.
PATH_SAMPLING_INTERVAL_S = _env_float("PATH_SAMPLING_INTERVAL_S", 2.0)

# Interval (seconds) between collision checks against foreign territories.
COLLISION_CHECK_INTERVAL_S = _env_float("COLLISION_CHECK_INTERVAL_S", 10.0)


# ---------------------------------------------------------------------------
# Proximity warnings
# ---------------------------------------------------------------------------
# Distance bands (metres) to the nearest foreign territory vertex:
# >= caution -> safe, >= warning -> caution, >= danger -> warning, else danger.
PROXIMITY_CAUTION_M = _env_float("PROXIMITY_CAUTION_M", 100.0)
PROXIMITY_WARNING_M = _env_float("PROXIMITY_WARNING_M", 50.0)
PROXIMITY_DANGER_M = _env_float("PROXIMITY_DANGER_M", 25.0)


# ---------------------------------------------------------------------------
# Exploration (free-roam distance)
# ---------------------------------------------------------------------------
# Samples with a worse horizontal accuracy (metres) are discarded.
EXPLORATION_MAX_ACCURACY_M = _env_float("EXPLORATION_MAX_ACCURACY_M", 50.0)

# Single steps at least this long (metres) are treated as GPS glitches.
EXPLORATION_MAX_JUMP_M = _env_float("EXPLORATION_MAX_JUMP_M", 100.0)

# Minimum spacing (seconds) between accepted samples.
EXPLORATION_MIN_INTERVAL_S = _env_float("EXPLORATION_MIN_INTERVAL_S", 1.0)

# Speed ceiling and the grace countdown before the session is force-stopped.
EXPLORATION_SPEED_LIMIT_KMH = _env_float("EXPLORATION_SPEED_LIMIT_KMH", 30.0)
EXPLORATION_SPEED_GRACE_S = _env_float("EXPLORATION_SPEED_GRACE_S", 10.0)


# ---------------------------------------------------------------------------
# Territory store
# ---------------------------------------------------------------------------
# Base URL of the PostgREST-compatible endpoint and its API key.
TERRITORY_STORE_URL = os.getenv("TERRITORY_STORE_URL", "")
TERRITORY_STORE_API_KEY = os.getenv("TERRITORY_STORE_API_KEY", "")
TERRITORY_STORE_TABLE = os.getenv("TERRITORY_STORE_TABLE", "territories")

# HTTP session pool sizes and request timeout in seconds.
HTTP_POOL_CONNECTIONS = _env_int("HTTP_POOL_CONNECTIONS", 4)
HTTP_POOL_MAXSIZE = _env_int("HTTP_POOL_MAXSIZE", 4)
REQUEST_TIMEOUT = _env_int("REQUEST_TIMEOUT", 15)

# Seconds the loaded territory list is reused before it is fetched again.
TERRITORY_CATALOG_TTL_S = _env_int("TERRITORY_CATALOG_TTL_S", 300)

# Spatial reference written into the polygon column.
TERRITORY_POLYGON_SRID = _env_int("TERRITORY_POLYGON_SRID", 4326)


# ---------------------------------------------------------------------------
# Diagnostics
# ---------------------------------------------------------------------------
# Number of log lines kept by the in-memory log book.
LOGBOOK_MAX_ENTRIES = _env_int("LOGBOOK_MAX_ENTRIES", 200)

# Emit DEBUG lines for every rejected jitter sample.
LOG_REJECTED_SAMPLES = _env_bool("LOG_REJECTED_SAMPLES", False)
