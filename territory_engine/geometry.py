"""Spherical geometry helpers shared by validation and collision checks.

Distances use the haversine formula on a sphere of radius
``EARTH_RADIUS_M``. Planar predicates (segment crossing, point in polygon)
treat longitude as x and latitude as y, which is accurate enough for the
walking-scale polygons the engine deals with.
"""

from __future__ import annotations

import math
from typing import Iterable, Sequence

import numpy as np
from numpy.typing import NDArray

from .config import EARTH_RADIUS_M
from .models import GeoPoint

DegreeArray = NDArray[np.float64]


def distance(a: GeoPoint, b: GeoPoint) -> float:
    """Great-circle distance in metres between two points."""

    phi1 = math.radians(a.latitude)
    phi2 = math.radians(b.latitude)
    d_phi = math.radians(b.latitude - a.latitude)
    d_lambda = math.radians(b.longitude - a.longitude)

    h = math.sin(d_phi / 2.0) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2.0) ** 2
    c = 2.0 * math.atan2(math.sqrt(h), math.sqrt(1.0 - h))
    return EARTH_RADIUS_M * c


def _as_degree_array(points: Iterable[GeoPoint]) -> DegreeArray:
    """Return an ``(n, 2)`` array of ``(lat, lon)`` degrees."""

    array = np.asarray(
        [(p.latitude, p.longitude) for p in points], dtype=float
    ).reshape(-1, 2)
    return array


def _haversine_many(origin: DegreeArray, targets: DegreeArray) -> DegreeArray:
    """Vectorised haversine from ``origin`` rows to ``targets`` rows (broadcasting)."""

    lat1 = np.radians(origin[..., 0])
    lon1 = np.radians(origin[..., 1])
    lat2 = np.radians(targets[..., 0])
    lon2 = np.radians(targets[..., 1])
    h = (
        np.sin((lat2 - lat1) / 2.0) ** 2
        + np.cos(lat1) * np.cos(lat2) * np.sin((lon2 - lon1) / 2.0) ** 2
    )
    h = np.clip(h, 0.0, 1.0)
    return EARTH_RADIUS_M * 2.0 * np.arctan2(np.sqrt(h), np.sqrt(1.0 - h))


def path_length(path: Sequence[GeoPoint]) -> float:
    """Sum of consecutive great-circle distances along the path (metres)."""

    if len(path) < 2:
        return 0.0
    array = _as_degree_array(path)
    return float(np.sum(_haversine_many(array[:-1], array[1:])))


def spherical_polygon_area(path: Sequence[GeoPoint]) -> float:
    """Area in square metres of the implicitly closed polygon traced by ``path``.

    Shoelace summation over longitude differences weighted by
    ``2 + sin(lat_i) + sin(lat_j)``, which corrects for the sphere's
    curvature. The absolute value is taken so orientation does not matter.
    Paths with fewer than three points enclose nothing and return 0.
    """

    if len(path) < 3:
        return 0.0
    radians = np.radians(_as_degree_array(path))
    lat = radians[:, 0]
    lon = radians[:, 1]
    next_lat = np.roll(lat, -1)
    next_lon = np.roll(lon, -1)
    total = np.sum((next_lon - lon) * (2.0 + np.sin(lat) + np.sin(next_lat)))
    return float(abs(total * EARTH_RADIUS_M * EARTH_RADIUS_M / 2.0))


def _ccw(a: GeoPoint, b: GeoPoint, c: GeoPoint) -> bool:
    """True when ``a -> b -> c`` turns counter-clockwise (lon = x, lat = y)."""

    cross = (c.latitude - a.latitude) * (b.longitude - a.longitude) - (
        b.latitude - a.latitude
    ) * (c.longitude - a.longitude)
    return cross > 0


def segments_intersect(p1: GeoPoint, p2: GeoPoint, p3: GeoPoint, p4: GeoPoint) -> bool:
    """Return True when segment ``p1-p2`` properly crosses segment ``p3-p4``.

    Each segment's endpoints must straddle the other segment's line.
    Collinear overlaps and touching endpoints are not handled specially.
    """

    return _ccw(p1, p3, p4) != _ccw(p2, p3, p4) and _ccw(p1, p2, p3) != _ccw(p1, p2, p4)


def point_in_polygon(point: GeoPoint, polygon: Sequence[GeoPoint]) -> bool:
    """Even-odd ray casting test; polygons with fewer than 3 vertices contain nothing."""

    count = len(polygon)
    if count < 3:
        return False
    x = point.longitude
    y = point.latitude
    inside = False
    j = count - 1
    for i in range(count):
        xi, yi = polygon[i].longitude, polygon[i].latitude
        xj, yj = polygon[j].longitude, polygon[j].latitude
        if (yi > y) != (yj > y) and x < (xj - xi) * (y - yi) / (yj - yi) + xi:
            inside = not inside
        j = i
    return inside


def min_distance_to_vertices(
    point: GeoPoint, polygons: Iterable[Sequence[GeoPoint]]
) -> float:
    """Distance (metres) from ``point`` to the nearest vertex of any polygon."""

    vertices = [vertex for polygon in polygons for vertex in polygon]
    if not vertices:
        return math.inf
    origin = _as_degree_array([point])[0]
    distances = _haversine_many(origin, _as_degree_array(vertices))
    return float(np.min(distances))


__all__ = [
    "distance",
    "path_length",
    "spherical_polygon_area",
    "segments_intersect",
    "point_in_polygon",
    "min_distance_to_vertices",
]
