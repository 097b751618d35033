"""Composite validity checks for a finished territory path."""

from __future__ import annotations

import logging
from typing import Optional, Sequence, Tuple

from .config import (
    MIN_ENCLOSED_AREA_M2,
    MIN_PATH_POINTS,
    MIN_TOTAL_DISTANCE_M,
    SELF_INTERSECTION_SKIP_HEAD,
    SELF_INTERSECTION_SKIP_TAIL,
)
from .geometry import path_length, segments_intersect, spherical_polygon_area
from .models import GeoPoint, ValidationFailure, ValidationResult

LOGGER = logging.getLogger(__name__)


class TerritoryValidator:
    """Run the ordered claim checks, stopping at the first failure.

    1. enough points
    2. enough walked distance
    3. no self-intersection
    4. enough enclosed area

    Failures are returned as results, never raised.
    """

    def __init__(
        self,
        *,
        min_points: int = MIN_PATH_POINTS,
        min_distance_m: float = MIN_TOTAL_DISTANCE_M,
        min_area_m2: float = MIN_ENCLOSED_AREA_M2,
        skip_head: int = SELF_INTERSECTION_SKIP_HEAD,
        skip_tail: int = SELF_INTERSECTION_SKIP_TAIL,
    ) -> None:
        self._log = LOGGER.getChild(self.__class__.__name__)
        self.min_points = min_points
        self.min_distance_m = min_distance_m
        self.min_area_m2 = min_area_m2
        self.skip_head = skip_head
        self.skip_tail = skip_tail

    def validate(self, path: Sequence[GeoPoint]) -> ValidationResult:
        path = tuple(path)
        self._log.info("Validating territory path")

        count = len(path)
        if count < self.min_points:
            self._log.error("Point check: %d points (need >= %d) FAILED", count, self.min_points)
            return self._fail(
                ValidationFailure.INSUFFICIENT_POINTS,
                f"Insufficient points: {count} (need >= {self.min_points})",
                point_count=count,
            )
        self._log.info("Point check: %d points OK", count)

        total = path_length(path)
        if total < self.min_distance_m:
            self._log.error("Distance check: %.0fm FAILED", total)
            return self._fail(
                ValidationFailure.INSUFFICIENT_DISTANCE,
                f"Insufficient distance: {total:.0f}m (need >= {self.min_distance_m:.0f}m)",
                point_count=count,
                total_distance_m=total,
            )
        self._log.info("Distance check: %.0fm OK", total)

        crossing = self.find_self_intersection(path)
        if crossing is not None:
            self._log.error(
                "Self-intersection check: segment %d-%d crosses segment %d-%d",
                crossing[0],
                crossing[0] + 1,
                crossing[1],
                crossing[1] + 1,
            )
            return self._fail(
                ValidationFailure.SELF_INTERSECTING,
                "Self-intersecting path, do not walk a figure eight",
                point_count=count,
                total_distance_m=total,
            )
        self._log.info("Self-intersection check: no crossings OK")

        area = spherical_polygon_area(path)
        if area < self.min_area_m2:
            self._log.error("Area check: %.0fm2 FAILED", area)
            return self._fail(
                ValidationFailure.INSUFFICIENT_AREA,
                f"Insufficient area: {area:.0f}m2 (need >= {self.min_area_m2:.0f}m2)",
                point_count=count,
                total_distance_m=total,
            )
        self._log.info("Territory validation passed, area %.0fm2", area)
        return ValidationResult(
            passed=True,
            area_m2=area,
            total_distance_m=total,
            point_count=count,
        )

    def has_self_intersection(self, path: Sequence[GeoPoint]) -> bool:
        return self.find_self_intersection(path) is not None

    def find_self_intersection(
        self, path: Sequence[GeoPoint]
    ) -> Optional[Tuple[int, int]]:
        """Return the first pair of crossing segment indices, if any.

        Segment ``k`` joins ``path[k]`` and ``path[k + 1]``. Adjacent segments
        share a vertex and are never compared. Pairs made of a head segment
        and a tail segment are skipped because a closed loop's end
        legitimately comes back next to its start.
        """

        if len(path) < 4:
            return None
        segment_count = len(path) - 1
        tail_start = segment_count - self.skip_tail
        for i in range(segment_count):
            p1, p2 = path[i], path[i + 1]
            for j in range(i + 2, segment_count):
                if i < self.skip_head and j >= tail_start:
                    continue
                if segments_intersect(p1, p2, path[j], path[j + 1]):
                    return i, j
        return None

    def _fail(
        self,
        failure: ValidationFailure,
        reason: str,
        *,
        point_count: int,
        total_distance_m: float = 0.0,
    ) -> ValidationResult:
        self._log.error("Territory validation failed: %s", reason)
        return ValidationResult(
            passed=False,
            failure=failure,
            reason=reason,
            point_count=point_count,
            total_distance_m=total_distance_m,
        )


__all__ = ["TerritoryValidator"]
