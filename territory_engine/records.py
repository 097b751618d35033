"""Conversion between engine types and the persisted territory record shape.

A stored territory row carries the raw path as ``[{"lat": .., "lon": ..}]``,
the same ring as EWKT (``SRID=4326;POLYGON((lon lat, ...))``, longitude first
and explicitly closed), a bounding box, the area, the point count, the start
timestamp and an active flag.
"""

from __future__ import annotations

from datetime import datetime, timezone
import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from shapely import wkt as shapely_wkt
from shapely.errors import GEOSException
from shapely.geometry import LinearRing, MultiPoint

from .config import TERRITORY_POLYGON_SRID
from .models import GeoPoint, Territory

LOGGER = logging.getLogger(__name__)

BoundingBox = Tuple[float, float, float, float]
Record = Dict[str, Any]


def path_to_json(path: Sequence[GeoPoint]) -> List[Dict[str, float]]:
    return [{"lat": p.latitude, "lon": p.longitude} for p in path]


def path_from_json(items: Sequence[Mapping[str, Any]] | None) -> Tuple[GeoPoint, ...]:
    """Parse ``[{"lat", "lon"}]`` entries, skipping malformed ones."""

    points: List[GeoPoint] = []
    for item in items or ():
        try:
            points.append(GeoPoint(float(item["lat"]), float(item["lon"])))
        except (KeyError, TypeError, ValueError):
            LOGGER.debug("Skipping malformed path entry %r", item)
    return tuple(points)


def path_to_wkt(path: Sequence[GeoPoint], srid: int = TERRITORY_POLYGON_SRID) -> str:
    """Closed EWKT polygon ring, longitude before latitude."""

    if not path:
        return f"SRID={srid};POLYGON(())"
    coords = [(p.longitude, p.latitude) for p in path]
    try:
        body = shapely_wkt.dumps(LinearRing(coords), trim=True)
        # LINEARRING (x y, ...) -> POLYGON((x y, ...))
        inner = body[body.index("(") + 1 : body.rindex(")")]
    except (ValueError, GEOSException):
        # Too few distinct vertices for a ring; close it by hand.
        closed = coords + [coords[0]]
        inner = ", ".join(f"{x!r} {y!r}" for x, y in closed)
    return f"SRID={srid};POLYGON(({inner}))"


def bounding_box(path: Sequence[GeoPoint]) -> BoundingBox:
    """``(min_lat, max_lat, min_lon, max_lon)``; zeros for an empty path."""

    if not path:
        return 0.0, 0.0, 0.0, 0.0
    min_lon, min_lat, max_lon, max_lat = MultiPoint(
        [(p.longitude, p.latitude) for p in path]
    ).bounds
    return float(min_lat), float(max_lat), float(min_lon), float(max_lon)


def build_record(
    owner_id: str,
    path: Sequence[GeoPoint],
    area_m2: float,
    started_at: datetime,
) -> Record:
    """Build the insert payload for a validated claim."""

    min_lat, max_lat, min_lon, max_lon = bounding_box(path)
    return {
        "user_id": owner_id,
        "path": path_to_json(path),
        "polygon": path_to_wkt(path),
        "bbox_min_lat": min_lat,
        "bbox_max_lat": max_lat,
        "bbox_min_lon": min_lon,
        "bbox_max_lon": max_lon,
        "area": float(area_m2),
        "point_count": len(path),
        "started_at": _isoformat(started_at),
        "is_active": True,
    }


def territory_from_record(record: Mapping[str, Any]) -> Territory:
    """Parse a store row. Optional columns missing from older rows are tolerated."""

    polygon = path_from_json(record.get("path"))
    point_count = record.get("point_count")
    is_active = record.get("is_active")
    return Territory(
        id=str(record.get("id", "")),
        owner_id=str(record.get("user_id", "")),
        polygon=polygon,
        area_m2=float(record.get("area") or 0.0),
        point_count=int(point_count) if point_count is not None else len(polygon),
        is_active=True if is_active is None else bool(is_active),
        created_at=parse_timestamp(record.get("created_at")),
        started_at=parse_timestamp(record.get("started_at")),
        name=record.get("name") or None,
    )


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse ISO-8601 strings (``Z`` suffix and fractional seconds accepted)."""

    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        LOGGER.debug("Unparseable timestamp %r", value)
        return None


def _isoformat(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


__all__ = [
    "build_record",
    "territory_from_record",
    "path_to_json",
    "path_from_json",
    "path_to_wkt",
    "bounding_box",
    "parse_timestamp",
]
