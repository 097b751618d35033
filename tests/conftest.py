"""Global pytest fixtures & helpers.

Adds the project root to the path and provides grid-built paths, foreign
territories and a manual scheduler shared across the engine tests.

Grid coordinates are ``(x, y)`` in units of ``UNIT_M`` metres, x pointing
east and y north of ``ORIGIN``. Points on the same grid line share an exact
latitude or longitude, so collinear segments never register as crossings.
"""
from __future__ import annotations

import math
import os
import sys
from datetime import datetime, timedelta, timezone

import pytest

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from territory_engine.location import LocationFeed
from territory_engine.models import GeoPoint, LocationSample, Territory, as_points
from territory_engine.scheduler import ManualScheduler

ORIGIN_LAT = 31.2304
ORIGIN_LON = 121.4737
UNIT_M = 12.0
METRES_PER_DEGREE = 6_371_000.0 * math.pi / 180.0
STEP_LAT = UNIT_M / METRES_PER_DEGREE
STEP_LON = UNIT_M / (METRES_PER_DEGREE * math.cos(math.radians(ORIGIN_LAT)))
T0 = datetime(2025, 6, 1, 8, 0, 0, tzinfo=timezone.utc)

# 48 m square walked anticlockwise, ending one unit short of the start.
SQUARE_LOOP = [
    (0, 0), (1, 0), (2, 0), (3, 0), (4, 0),
    (4, 1), (4, 2), (4, 3), (4, 4),
    (3, 4), (2, 4), (1, 4), (0, 4),
    (0, 3), (0, 2), (0, 1),
]

# Down the left side, diagonally across, up the right side and back across.
FIGURE_EIGHT = [
    (0, 0), (0, 1), (0, 2), (0, 3), (0, 4),
    (1, 3), (2, 2), (3, 1), (4, 0),
    (4, 1), (4, 2), (4, 3), (4, 4),
    (3, 3.375), (2, 2.25), (1, 1.125), (0, 0.5),
]


# --- Factory helpers -------------------------------------------------
def grid_point(x: float, y: float) -> GeoPoint:
    return GeoPoint(ORIGIN_LAT + y * STEP_LAT, ORIGIN_LON + x * STEP_LON)


def grid_path(coords):
    return as_points(
        [(ORIGIN_LAT + y * STEP_LAT, ORIGIN_LON + x * STEP_LON) for x, y in coords]
    )


def make_sample(x, y, seconds=0.0, accuracy=5.0, speed_mps=-1.0):
    point = grid_point(x, y)
    return LocationSample(
        timestamp=T0 + timedelta(seconds=seconds),
        latitude=point.latitude,
        longitude=point.longitude,
        horizontal_accuracy_m=accuracy,
        speed_mps=speed_mps,
    )


def make_territory(owner_id="rival", x0=10, y0=0, size=4, territory_id="t-1", is_active=True):
    polygon = tuple(
        grid_path([(x0, y0), (x0 + size, y0), (x0 + size, y0 + size), (x0, y0 + size)])
    )
    return Territory(
        id=territory_id,
        owner_id=owner_id,
        polygon=polygon,
        area_m2=(size * UNIT_M) ** 2,
        point_count=len(polygon),
        is_active=is_active,
    )


# --- Fixtures --------------------------------------------------------
@pytest.fixture
def square_loop():
    return grid_path(SQUARE_LOOP)


@pytest.fixture
def figure_eight():
    return grid_path(FIGURE_EIGHT)


@pytest.fixture
def foreign_territory():
    return make_territory()


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def feed():
    return LocationFeed()
