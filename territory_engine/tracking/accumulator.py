"""Filtered accumulation of location samples into a candidate path."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
import logging
from typing import List, Optional

from ..config import (
    LOG_REJECTED_SAMPLES,
    MIN_DISTANCE_FOR_NEW_POINT_M,
    SPEED_LIMIT_KMH,
    SPEED_WARNING_KMH,
)
from ..errors import SpeedViolationError, TrackingAbortedError
from ..geometry import distance, path_length
from ..models import GeoPoint, LocationSample, PathSnapshot

LOGGER = logging.getLogger(__name__)


class OfferStatus(str, Enum):
    ACCEPTED = "accepted"
    ACCEPTED_WITH_WARNING = "accepted_with_warning"
    REJECTED_JITTER = "rejected_jitter"
    REJECTED_SPEED = "rejected_speed"


@dataclass(frozen=True, slots=True)
class OfferResult:
    """What happened to a single offered sample."""

    status: OfferStatus
    point_count: int
    distance_m: float = 0.0
    speed_kmh: Optional[float] = None
    warning: Optional[str] = None
    error: Optional[SpeedViolationError] = None

    @property
    def accepted(self) -> bool:
        return self.status in (OfferStatus.ACCEPTED, OfferStatus.ACCEPTED_WITH_WARNING)


class PathAccumulator:
    """Stateful buffer of accepted path points.

    Samples go through two filters, always in this order: the jitter filter
    (too close to the last accepted point) and then the speed filter. Checking
    speed first would turn stationary GPS noise into false speed violations.
    """

    def __init__(
        self,
        *,
        min_distance_m: float = MIN_DISTANCE_FOR_NEW_POINT_M,
        warning_speed_kmh: float = SPEED_WARNING_KMH,
        max_speed_kmh: float = SPEED_LIMIT_KMH,
    ) -> None:
        if warning_speed_kmh > max_speed_kmh:
            raise ValueError("warning_speed_kmh must not exceed max_speed_kmh")
        self._log = LOGGER.getChild(self.__class__.__name__)
        self._min_distance_m = min_distance_m
        self._warning_speed_kmh = warning_speed_kmh
        self._max_speed_kmh = max_speed_kmh
        self._path: List[GeoPoint] = []
        self._last_timestamp: Optional[datetime] = None
        self._speed_warning: Optional[str] = None
        self._aborted = False

    @property
    def path(self) -> PathSnapshot:
        return tuple(self._path)

    @property
    def point_count(self) -> int:
        return len(self._path)

    @property
    def last_point(self) -> Optional[GeoPoint]:
        return self._path[-1] if self._path else None

    @property
    def speed_warning(self) -> Optional[str]:
        return self._speed_warning

    @property
    def is_aborted(self) -> bool:
        return self._aborted

    def total_distance(self) -> float:
        return path_length(self._path)

    def reset(self) -> None:
        self._path.clear()
        self._last_timestamp = None
        self._speed_warning = None
        self._aborted = False

    def offer(self, sample: LocationSample) -> OfferResult:
        """Filter ``sample`` and append it to the path when it passes."""

        if self._aborted:
            raise TrackingAbortedError("Path tracking was aborted; reset before offering samples")

        point = sample.point
        if not self._path:
            self._append(point, sample.timestamp)
            return OfferResult(OfferStatus.ACCEPTED, point_count=1)

        last = self._path[-1]
        step = distance(last, point)
        if step <= self._min_distance_m:
            if LOG_REJECTED_SAMPLES:
                self._log.debug("Jitter sample dropped (%.1fm from last point)", step)
            return OfferResult(
                OfferStatus.REJECTED_JITTER, point_count=len(self._path), distance_m=step
            )

        speed_kmh = self._speed_kmh(step, sample.timestamp)
        if speed_kmh is not None and speed_kmh <= self._warning_speed_kmh:
            self._speed_warning = None

        if speed_kmh is not None and speed_kmh > self._max_speed_kmh:
            error = SpeedViolationError(speed_kmh, self._max_speed_kmh)
            self._speed_warning = str(error)
            self._aborted = True
            self._log.error("Speed %.1f km/h over limit, tracking aborted", speed_kmh)
            return OfferResult(
                OfferStatus.REJECTED_SPEED,
                point_count=len(self._path),
                distance_m=step,
                speed_kmh=speed_kmh,
                warning=self._speed_warning,
                error=error,
            )

        status = OfferStatus.ACCEPTED
        if speed_kmh is not None and speed_kmh > self._warning_speed_kmh:
            self._speed_warning = f"Moving too fast ({speed_kmh:.1f} km/h), please slow down"
            status = OfferStatus.ACCEPTED_WITH_WARNING
            self._log.warning("Speed %.1f km/h above advisory limit", speed_kmh)

        self._append(point, sample.timestamp)
        self._log.info("Recorded point %d, %.1fm from previous", len(self._path), step)
        return OfferResult(
            status,
            point_count=len(self._path),
            distance_m=step,
            speed_kmh=speed_kmh,
            warning=self._speed_warning,
        )

    def _speed_kmh(self, step_m: float, timestamp: datetime) -> Optional[float]:
        if self._last_timestamp is None:
            return None
        elapsed = (timestamp - self._last_timestamp).total_seconds()
        if elapsed <= 0:
            return None
        return step_m / elapsed * 3.6

    def _append(self, point: GeoPoint, timestamp: datetime) -> None:
        self._path.append(point)
        self._last_timestamp = timestamp


__all__ = ["PathAccumulator", "OfferResult", "OfferStatus"]
