"""Dataclasses describing locations, territories and engine results."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum, IntEnum
import math
from typing import List, Optional, Sequence, Tuple


@dataclass(frozen=True, slots=True)
class GeoPoint:
    """Latitude/longitude pair in decimal degrees (WGS-84 unless noted)."""

    latitude: float
    longitude: float


Path = List[GeoPoint]
PathSnapshot = Tuple[GeoPoint, ...]


@dataclass(frozen=True, slots=True)
class LocationSample:
    """A single fix delivered by the location source.

    Attributes:
        timestamp: Time of the fix (timezone-aware).
        latitude: Latitude in decimal degrees.
        longitude: Longitude in decimal degrees.
        horizontal_accuracy_m: Accuracy radius in metres; negative means invalid.
        speed_mps: Instantaneous speed in metres/second; negative means unknown.
    """

    timestamp: datetime
    latitude: float
    longitude: float
    horizontal_accuracy_m: float = 5.0
    speed_mps: float = -1.0

    @property
    def point(self) -> GeoPoint:
        return GeoPoint(self.latitude, self.longitude)


@dataclass(frozen=True, slots=True)
class Territory:
    """A claimed polygon owned by an actor, as loaded from the territory store."""

    id: str
    owner_id: str
    polygon: Tuple[GeoPoint, ...]
    area_m2: float
    point_count: int
    is_active: bool = True
    created_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    name: Optional[str] = None

    def is_owned_by(self, owner_id: str) -> bool:
        """Owner ids are compared case-insensitively (UUID casing varies by client)."""

        return self.owner_id.lower() == owner_id.lower()

    @property
    def display_name(self) -> str:
        if self.name:
            return self.name
        return f"Territory #{self.id[:6].upper()}"


class ValidationFailure(str, Enum):
    """Reason a finished path was rejected, in the order the checks run."""

    INSUFFICIENT_POINTS = "insufficient_points"
    INSUFFICIENT_DISTANCE = "insufficient_distance"
    SELF_INTERSECTING = "self_intersecting"
    INSUFFICIENT_AREA = "insufficient_area"


@dataclass(frozen=True, slots=True)
class ValidationResult:
    """Outcome of validating a finished path. ``area_m2`` is only meaningful on pass."""

    passed: bool
    failure: Optional[ValidationFailure] = None
    reason: Optional[str] = None
    area_m2: float = 0.0
    total_distance_m: float = 0.0
    point_count: int = 0


class WarningLevel(IntEnum):
    """Graded proximity signal. Only ``VIOLATION`` blocks the claim."""

    SAFE = 0
    CAUTION = 1
    WARNING = 2
    DANGER = 3
    VIOLATION = 4

    @property
    def is_blocking(self) -> bool:
        return self is WarningLevel.VIOLATION


class CollisionKind(str, Enum):
    POINT_IN_TERRITORY = "point_in_territory"
    PATH_CROSSES_TERRITORY = "path_crosses_territory"


@dataclass(frozen=True, slots=True)
class CollisionResult:
    """Blocking collision or advisory proximity grading for a point or path."""

    has_collision: bool
    kind: Optional[CollisionKind] = None
    message: Optional[str] = None
    closest_distance_m: float = math.inf
    warning_level: WarningLevel = WarningLevel.SAFE
    territory_id: Optional[str] = None

    @classmethod
    def safe(cls, closest_distance_m: float = math.inf) -> "CollisionResult":
        return cls(has_collision=False, closest_distance_m=closest_distance_m)


@dataclass(frozen=True, slots=True)
class ClaimDraft:
    """A finished path plus its validation, ready to hand to the territory store."""

    owner_id: str
    path: Tuple[GeoPoint, ...]
    validation: ValidationResult
    started_at: datetime


@dataclass(slots=True)
class ExplorationSummary:
    """Settlement data reported when an exploration session ends."""

    distance_m: float
    duration_s: float
    started_at: Optional[datetime]
    failed: bool = False
    reason: Optional[str] = None
    rejected_samples: int = 0
    glitch_samples: int = 0


def as_points(pairs: Sequence[Sequence[float]]) -> Path:
    """Convert raw ``(lat, lon)`` pairs into GeoPoints."""

    return [GeoPoint(float(lat), float(lon)) for lat, lon in pairs]


__all__ = [
    "GeoPoint",
    "Path",
    "PathSnapshot",
    "LocationSample",
    "Territory",
    "ValidationFailure",
    "ValidationResult",
    "WarningLevel",
    "CollisionKind",
    "CollisionResult",
    "ClaimDraft",
    "ExplorationSummary",
    "as_points",
]
