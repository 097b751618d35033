"""Collision and proximity checks against territories owned by other actors."""

from __future__ import annotations

import logging
import math
from typing import Iterable, List, Sequence

from .config import PROXIMITY_CAUTION_M, PROXIMITY_DANGER_M, PROXIMITY_WARNING_M
from .geometry import min_distance_to_vertices, point_in_polygon, segments_intersect
from .models import (
    CollisionKind,
    CollisionResult,
    GeoPoint,
    Territory,
    WarningLevel,
)

LOGGER = logging.getLogger(__name__)


class CollisionDetector:
    """Detect blocking overlaps and grade proximity to foreign territories.

    Only the two boundary checks (point inside, path crossing) produce the
    blocking ``VIOLATION`` level. Distance grading is advisory. The detector
    holds no state and may be called from any timer callback.
    """

    def __init__(
        self,
        *,
        caution_m: float = PROXIMITY_CAUTION_M,
        warning_m: float = PROXIMITY_WARNING_M,
        danger_m: float = PROXIMITY_DANGER_M,
    ) -> None:
        if not caution_m >= warning_m >= danger_m >= 0:
            raise ValueError("Proximity bands must satisfy caution >= warning >= danger >= 0")
        self._log = LOGGER.getChild(self.__class__.__name__)
        self.caution_m = caution_m
        self.warning_m = warning_m
        self.danger_m = danger_m

    @staticmethod
    def point_in_polygon(point: GeoPoint, polygon: Sequence[GeoPoint]) -> bool:
        return point_in_polygon(point, polygon)

    @staticmethod
    def foreign_territories(
        owner_id: str, territories: Iterable[Territory]
    ) -> List[Territory]:
        """Active territories not owned by ``owner_id``."""

        return [
            territory
            for territory in territories
            if territory.is_active and not territory.is_owned_by(owner_id)
        ]

    def check_start(
        self, point: GeoPoint, owner_id: str, territories: Iterable[Territory]
    ) -> CollisionResult:
        """Refuse to start a claim inside someone else's territory."""

        for territory in self.foreign_territories(owner_id, territories):
            if len(territory.polygon) < 3:
                continue
            if point_in_polygon(point, territory.polygon):
                self._log.error("Start point lies inside territory %s", territory.id)
                return CollisionResult(
                    has_collision=True,
                    kind=CollisionKind.POINT_IN_TERRITORY,
                    message="Cannot start a claim inside another player's territory",
                    closest_distance_m=0.0,
                    warning_level=WarningLevel.VIOLATION,
                    territory_id=territory.id,
                )
        return CollisionResult.safe()

    def check_path(
        self, path: Sequence[GeoPoint], owner_id: str, territories: Iterable[Territory]
    ) -> CollisionResult:
        """Crossing checks first (short-circuit to violation), then proximity grading."""

        if len(path) < 2:
            return CollisionResult.safe()
        others = [t for t in self.foreign_territories(owner_id, territories) if len(t.polygon) >= 3]
        if not others:
            return CollisionResult.safe()

        violation = self._find_violation(path, others)
        if violation is not None:
            return violation

        closest = min_distance_to_vertices(path[-1], (t.polygon for t in others))
        level = self.grade(closest)
        message = self._describe(level, closest)
        if level is not WarningLevel.SAFE:
            self._log.warning("Proximity %s, %.0fm from foreign territory", level.name.lower(), closest)
        return CollisionResult(
            has_collision=False,
            message=message,
            closest_distance_m=closest,
            warning_level=level,
        )

    def grade(self, closest_m: float) -> WarningLevel:
        """Map a nearest-vertex distance onto an advisory warning level."""

        if closest_m >= self.caution_m:
            return WarningLevel.SAFE
        if closest_m >= self.warning_m:
            return WarningLevel.CAUTION
        if closest_m >= self.danger_m:
            return WarningLevel.WARNING
        return WarningLevel.DANGER

    def _find_violation(
        self, path: Sequence[GeoPoint], others: Sequence[Territory]
    ) -> CollisionResult | None:
        for i in range(len(path) - 1):
            seg_start, seg_end = path[i], path[i + 1]
            for territory in others:
                polygon = territory.polygon
                count = len(polygon)
                for j in range(count):
                    if segments_intersect(
                        seg_start, seg_end, polygon[j], polygon[(j + 1) % count]
                    ):
                        self._log.error("Path crosses the boundary of territory %s", territory.id)
                        return CollisionResult(
                            has_collision=True,
                            kind=CollisionKind.PATH_CROSSES_TERRITORY,
                            message="Path cannot cross another player's territory",
                            closest_distance_m=0.0,
                            warning_level=WarningLevel.VIOLATION,
                            territory_id=territory.id,
                        )
                if point_in_polygon(seg_end, polygon):
                    self._log.error("Path entered territory %s", territory.id)
                    return CollisionResult(
                        has_collision=True,
                        kind=CollisionKind.POINT_IN_TERRITORY,
                        message="Path cannot enter another player's territory",
                        closest_distance_m=0.0,
                        warning_level=WarningLevel.VIOLATION,
                        territory_id=territory.id,
                    )
        return None

    @staticmethod
    def _describe(level: WarningLevel, closest_m: float) -> str | None:
        if level is WarningLevel.SAFE or math.isinf(closest_m):
            return None
        meters = int(closest_m)
        if level is WarningLevel.CAUTION:
            return f"Caution: {meters}m from another player's territory"
        if level is WarningLevel.WARNING:
            return f"Warning: approaching another player's territory ({meters}m)"
        return f"Danger: about to enter another player's territory ({meters}m)"


__all__ = ["CollisionDetector"]
