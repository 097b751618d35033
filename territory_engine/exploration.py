"""Free-roam distance tracking with a speed ceiling and grace countdown."""

from __future__ import annotations

from datetime import datetime, timezone
import logging
import threading
from typing import Callable, Optional

from .config import (
    EXPLORATION_MAX_ACCURACY_M,
    EXPLORATION_MAX_JUMP_M,
    EXPLORATION_MIN_INTERVAL_S,
    EXPLORATION_SPEED_GRACE_S,
    EXPLORATION_SPEED_LIMIT_KMH,
)
from .geometry import distance
from .location import LocationFeed
from .models import ExplorationSummary, GeoPoint, LocationSample
from .scheduler import ScheduledHandle, Scheduler

LOGGER = logging.getLogger(__name__)

FailureCallback = Callable[[ExplorationSummary], None]


class ExplorationTracker:
    """Sum walked distance over filtered samples.

    Samples are dropped when their accuracy is poor or when they arrive too
    soon after the previous one. A single step of ``max_jump_m`` or more is
    a GPS glitch: the position reference moves but no distance is added.

    Exceeding the speed ceiling suspends accumulation and starts a countdown
    on the scheduler. A sample back under the ceiling cancels it; if it runs
    out the session is force-terminated and ``on_failure`` receives a failed
    summary. Countdown cancellation and expiry both run under the tracker
    lock and carry a generation number, so the force-stop path fires at most
    once per countdown.
    """

    def __init__(
        self,
        scheduler: Scheduler,
        *,
        on_failure: Optional[FailureCallback] = None,
        max_accuracy_m: float = EXPLORATION_MAX_ACCURACY_M,
        max_jump_m: float = EXPLORATION_MAX_JUMP_M,
        min_interval_s: float = EXPLORATION_MIN_INTERVAL_S,
        speed_limit_kmh: float = EXPLORATION_SPEED_LIMIT_KMH,
        grace_s: float = EXPLORATION_SPEED_GRACE_S,
    ) -> None:
        self._log = LOGGER.getChild(self.__class__.__name__)
        self._scheduler = scheduler
        self._on_failure = on_failure
        self._max_accuracy_m = max_accuracy_m
        self._max_jump_m = max_jump_m
        self._min_interval_s = min_interval_s
        self._speed_limit_kmh = speed_limit_kmh
        self._grace_s = grace_s

        self._lock = threading.RLock()
        self._exploring = False
        self._total_distance_m = 0.0
        self._started_clock = 0.0
        self._stopped_clock: Optional[float] = None
        self._started_at: Optional[datetime] = None
        self._last_point: Optional[GeoPoint] = None
        self._last_time: Optional[datetime] = None
        self._countdown: Optional[ScheduledHandle] = None
        self._countdown_deadline: Optional[float] = None
        self._generation = 0
        self._rejected = 0
        self._glitches = 0
        self._failure: Optional[ExplorationSummary] = None
        self._unsubscribe: Optional[Callable[[], None]] = None

    # -- state -----------------------------------------------------------
    @property
    def is_exploring(self) -> bool:
        with self._lock:
            return self._exploring

    @property
    def total_distance_m(self) -> float:
        with self._lock:
            return self._total_distance_m

    @property
    def duration_s(self) -> float:
        with self._lock:
            if self._started_at is None:
                return 0.0
            end = self._stopped_clock if self._stopped_clock is not None else self._scheduler.now()
            return max(0.0, end - self._started_clock)

    @property
    def is_over_speed(self) -> bool:
        with self._lock:
            return self._countdown is not None

    @property
    def countdown_remaining_s(self) -> Optional[float]:
        with self._lock:
            if self._countdown_deadline is None:
                return None
            return max(0.0, self._countdown_deadline - self._scheduler.now())

    @property
    def failure(self) -> Optional[ExplorationSummary]:
        with self._lock:
            return self._failure

    # -- lifecycle -------------------------------------------------------
    def start(self, *, started_at: Optional[datetime] = None) -> bool:
        """Begin a session. Returns False when one is already running."""

        with self._lock:
            if self._exploring:
                return False
            self._cancel_countdown_locked()
            self._exploring = True
            self._total_distance_m = 0.0
            self._started_clock = self._scheduler.now()
            self._stopped_clock = None
            self._started_at = started_at or datetime.now(timezone.utc)
            self._last_point = None
            self._last_time = None
            self._rejected = 0
            self._glitches = 0
            self._failure = None
        self._log.info("Exploration started")
        return True

    def attach(self, feed: LocationFeed) -> None:
        """Consume samples pushed by ``feed`` until the session ends."""

        with self._lock:
            self._detach_locked()
            self._unsubscribe = feed.subscribe(self.offer)

    def stop(self) -> ExplorationSummary:
        """User-initiated stop. Idempotent: a second call returns an empty summary."""

        with self._lock:
            if not self._exploring:
                return ExplorationSummary(distance_m=0.0, duration_s=0.0, started_at=None)
            summary = self._finish_locked(failed=False, reason=None)
        self._log.info(
            "Exploration stopped: %.0fm in %.0fs", summary.distance_m, summary.duration_s
        )
        return summary

    def dispose(self) -> None:
        with self._lock:
            if self._exploring:
                self._finish_locked(failed=False, reason=None)
            self._detach_locked()

    # -- samples ---------------------------------------------------------
    def offer(self, sample: LocationSample) -> bool:
        """Process one sample. Returns True when it moved the position reference."""

        with self._lock:
            if not self._exploring:
                return False

            accuracy = sample.horizontal_accuracy_m
            if accuracy < 0 or accuracy > self._max_accuracy_m:
                self._rejected += 1
                return False

            elapsed: Optional[float] = None
            if self._last_time is not None:
                elapsed = (sample.timestamp - self._last_time).total_seconds()
                if elapsed < self._min_interval_s:
                    self._rejected += 1
                    return False

            point = sample.point
            step = distance(self._last_point, point) if self._last_point is not None else 0.0

            # A jump is a bad fix, not movement: no distance and no speed event.
            if self._last_point is not None and step >= self._max_jump_m:
                self._glitches += 1
                self._log.debug("GPS jump of %.0fm ignored", step)
                self._last_point = point
                self._last_time = sample.timestamp
                return True

            speed_kmh = self._speed_kmh(sample, step, elapsed)
            if speed_kmh > self._speed_limit_kmh:
                self._begin_countdown_locked(speed_kmh)
            elif self._countdown is not None:
                self._log.info("Speed back to %.1f km/h, countdown cancelled", speed_kmh)
                self._cancel_countdown_locked()

            if self._countdown is None:
                self._total_distance_m += step

            self._last_point = point
            self._last_time = sample.timestamp
            return True

    # -- internals -------------------------------------------------------
    @staticmethod
    def _speed_kmh(sample: LocationSample, step_m: float, elapsed: Optional[float]) -> float:
        if sample.speed_mps >= 0:
            return sample.speed_mps * 3.6
        if elapsed:
            return step_m / elapsed * 3.6
        return 0.0

    def _begin_countdown_locked(self, speed_kmh: float) -> None:
        if self._countdown is not None:
            return
        self._generation += 1
        generation = self._generation
        self._countdown_deadline = self._scheduler.now() + self._grace_s
        self._countdown = self._scheduler.call_later(
            self._grace_s, lambda: self._on_countdown_expired(generation)
        )
        self._log.warning(
            "Speed %.1f km/h over %.0f km/h, stopping in %.0fs unless it drops",
            speed_kmh,
            self._speed_limit_kmh,
            self._grace_s,
        )

    def _cancel_countdown_locked(self) -> None:
        # Bumping the generation invalidates an expiry already in flight.
        self._generation += 1
        handle, self._countdown = self._countdown, None
        self._countdown_deadline = None
        if handle is not None:
            handle.cancel()

    def _on_countdown_expired(self, generation: int) -> None:
        with self._lock:
            if not self._exploring or generation != self._generation:
                return
            summary = self._finish_locked(
                failed=True,
                reason=f"Speed stayed above {self._speed_limit_kmh:.0f} km/h for {self._grace_s:.0f}s",
            )
            self._failure = summary
            callback = self._on_failure
        self._log.error("Exploration force-stopped: %s", summary.reason)
        if callback is not None:
            callback(summary)

    def _finish_locked(self, *, failed: bool, reason: Optional[str]) -> ExplorationSummary:
        self._cancel_countdown_locked()
        self._stopped_clock = self._scheduler.now()
        self._exploring = False
        summary = ExplorationSummary(
            distance_m=self._total_distance_m,
            duration_s=max(0.0, self._stopped_clock - self._started_clock),
            started_at=self._started_at,
            failed=failed,
            reason=reason,
            rejected_samples=self._rejected,
            glitch_samples=self._glitches,
        )
        self._last_point = None
        self._last_time = None
        self._detach_locked()
        return summary

    def _detach_locked(self) -> None:
        unsubscribe, self._unsubscribe = self._unsubscribe, None
        if unsubscribe is not None:
            unsubscribe()


__all__ = ["ExplorationTracker"]
