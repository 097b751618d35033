"""Closed-loop detection for a growing path."""

from __future__ import annotations

import math
from typing import Sequence

from ..config import CLOSURE_DISTANCE_THRESHOLD_M, MIN_PATH_POINTS
from ..geometry import distance
from ..models import GeoPoint


class ClosureDetector:
    """Decide whether a path has returned close enough to its start.

    The detector is stateless; callers check once per newly accepted point
    and stop checking once a path reports closed.
    """

    def __init__(
        self,
        *,
        threshold_m: float = CLOSURE_DISTANCE_THRESHOLD_M,
        min_points: int = MIN_PATH_POINTS,
    ) -> None:
        self.threshold_m = threshold_m
        self.min_points = min_points

    def distance_to_start(self, path: Sequence[GeoPoint]) -> float:
        if len(path) < 2:
            return math.inf
        return distance(path[0], path[-1])

    def is_closed(self, path: Sequence[GeoPoint]) -> bool:
        if len(path) < self.min_points:
            return False
        return self.distance_to_start(path) <= self.threshold_m


__all__ = ["ClosureDetector"]
