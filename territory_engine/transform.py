"""WGS-84 to GCJ-02 coordinate transform.

GPS hardware reports WGS-84. Map tiles served inside mainland China use the
GCJ-02 datum, which applies a deterministic, non-linear offset. Traces are
stored and validated in WGS-84; only points handed to a GCJ-02 map are
transformed, exactly once. There is no inverse.
"""

from __future__ import annotations

import math
from typing import Iterable, List

from .models import GeoPoint

# Krasovsky 1940 ellipsoid.
_SEMI_MAJOR_AXIS = 6378245.0
_ECCENTRICITY_SQ = 0.00669342162296594323

_MIN_LON, _MAX_LON = 72.004, 137.8347
_MIN_LAT, _MAX_LAT = 0.8293, 55.8271


def is_outside_offset_region(point: GeoPoint) -> bool:
    """True when the point lies outside the region where GCJ-02 applies."""

    if point.longitude < _MIN_LON or point.longitude > _MAX_LON:
        return True
    if point.latitude < _MIN_LAT or point.latitude > _MAX_LAT:
        return True
    return False


def _latitude_offset(x: float, y: float) -> float:
    ret = -100.0 + 2.0 * x + 3.0 * y + 0.2 * y * y + 0.1 * x * y + 0.2 * math.sqrt(abs(x))
    ret += (20.0 * math.sin(6.0 * x * math.pi) + 20.0 * math.sin(2.0 * x * math.pi)) * 2.0 / 3.0
    ret += (20.0 * math.sin(y * math.pi) + 40.0 * math.sin(y / 3.0 * math.pi)) * 2.0 / 3.0
    ret += (160.0 * math.sin(y / 12.0 * math.pi) + 320.0 * math.sin(y * math.pi / 30.0)) * 2.0 / 3.0
    return ret


def _longitude_offset(x: float, y: float) -> float:
    ret = 300.0 + x + 2.0 * y + 0.1 * x * x + 0.1 * x * y + 0.1 * math.sqrt(abs(x))
    ret += (20.0 * math.sin(6.0 * x * math.pi) + 20.0 * math.sin(2.0 * x * math.pi)) * 2.0 / 3.0
    ret += (20.0 * math.sin(x * math.pi) + 40.0 * math.sin(x / 3.0 * math.pi)) * 2.0 / 3.0
    ret += (150.0 * math.sin(x / 12.0 * math.pi) + 300.0 * math.sin(x / 30.0 * math.pi)) * 2.0 / 3.0
    return ret


def transform(point: GeoPoint) -> GeoPoint:
    """Map a raw WGS-84 point onto the GCJ-02 datum (pass-through outside China)."""

    if is_outside_offset_region(point):
        return point

    x = point.longitude - 105.0
    y = point.latitude - 35.0
    d_lat = _latitude_offset(x, y)
    d_lon = _longitude_offset(x, y)

    rad_lat = point.latitude / 180.0 * math.pi
    magic = math.sin(rad_lat)
    magic = 1 - _ECCENTRICITY_SQ * magic * magic
    sqrt_magic = math.sqrt(magic)

    d_lat = (d_lat * 180.0) / ((_SEMI_MAJOR_AXIS * (1 - _ECCENTRICITY_SQ)) / (magic * sqrt_magic) * math.pi)
    d_lon = (d_lon * 180.0) / (_SEMI_MAJOR_AXIS / sqrt_magic * math.cos(rad_lat) * math.pi)
    return GeoPoint(point.latitude + d_lat, point.longitude + d_lon)


def transform_path(points: Iterable[GeoPoint]) -> List[GeoPoint]:
    """Transform every point of a raw path for display on a GCJ-02 map."""

    return [transform(point) for point in points]


__all__ = ["transform", "transform_path", "is_outside_offset_region"]
