"""Claim tracking session: sampling, closure, validation and collision ticks.

A :class:`TrackingSession` is an explicitly constructed service owned by the
host event loop. It polls the location feed on a short tick, feeds the
:class:`PathAccumulator`, checks closure after each accepted point and runs
the validator once the loop closes. A longer tick re-checks the live path
against foreign territories. Every mutation happens under one lock, and a
stopped session ignores late ticks.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
import logging
import threading
from typing import Any, Callable, List, Optional, Sequence, Tuple

from ..collision import CollisionDetector
from ..config import COLLISION_CHECK_INTERVAL_S, PATH_SAMPLING_INTERVAL_S
from ..errors import (
    CollisionViolationError,
    TerritoryEngineError,
    TrackingAbortedError,
)
from ..location import LocationFeed
from ..models import (
    ClaimDraft,
    CollisionResult,
    LocationSample,
    PathSnapshot,
    Territory,
    ValidationResult,
    WarningLevel,
)
from ..scheduler import ScheduledHandle, Scheduler
from ..validation import TerritoryValidator
from .accumulator import OfferStatus, PathAccumulator
from .closure import ClosureDetector

LOGGER = logging.getLogger(__name__)

TerritoryProvider = Callable[[], Sequence[Territory]]


class SessionState(str, Enum):
    IDLE = "idle"
    TRACKING = "tracking"
    STOPPED = "stopped"
    ABORTED = "aborted"


class SessionEventKind(str, Enum):
    STARTED = "started"
    START_BLOCKED = "start_blocked"
    POINT_ACCEPTED = "point_accepted"
    SPEED_WARNING = "speed_warning"
    CLOSED = "closed"
    VALIDATED = "validated"
    WARNING_LEVEL_CHANGED = "warning_level_changed"
    ABORTED = "aborted"
    STOPPED = "stopped"


@dataclass(frozen=True, slots=True)
class SessionEvent:
    kind: SessionEventKind
    payload: Any = None


SessionListener = Callable[[SessionEvent], None]


class TrackingSession:
    """Drive one territory claim from start to validated path."""

    def __init__(
        self,
        feed: LocationFeed,
        scheduler: Scheduler,
        territories: TerritoryProvider,
        *,
        accumulator: Optional[PathAccumulator] = None,
        closure: Optional[ClosureDetector] = None,
        validator: Optional[TerritoryValidator] = None,
        collision: Optional[CollisionDetector] = None,
        sampling_interval_s: float = PATH_SAMPLING_INTERVAL_S,
        collision_interval_s: float = COLLISION_CHECK_INTERVAL_S,
    ) -> None:
        self._log = LOGGER.getChild(self.__class__.__name__)
        self._feed = feed
        self._scheduler = scheduler
        self._territories = territories
        self._accumulator = accumulator or PathAccumulator()
        self._closure = closure or ClosureDetector()
        self._validator = validator or TerritoryValidator()
        self._collision = collision or CollisionDetector()
        self._sampling_interval_s = sampling_interval_s
        self._collision_interval_s = collision_interval_s

        self._lock = threading.RLock()
        self._listeners: List[SessionListener] = []
        self._state = SessionState.IDLE
        self._owner_id: Optional[str] = None
        self._started_at: Optional[datetime] = None
        self._sample_handle: Optional[ScheduledHandle] = None
        self._collision_handle: Optional[ScheduledHandle] = None
        self._last_offered: Optional[LocationSample] = None
        self._closed = False
        self._validation: Optional[ValidationResult] = None
        self._validated_path: PathSnapshot = ()
        self._manual_validation = False
        self._last_collision: CollisionResult = CollisionResult.safe()
        self._error: Optional[TrackingAbortedError] = None

    # -- observers -------------------------------------------------------
    def add_listener(self, listener: SessionListener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def _remove() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _remove

    # -- read-only state -------------------------------------------------
    @property
    def state(self) -> SessionState:
        with self._lock:
            return self._state

    @property
    def is_tracking(self) -> bool:
        return self.state is SessionState.TRACKING

    @property
    def path(self) -> PathSnapshot:
        with self._lock:
            return self._accumulator.path

    @property
    def point_count(self) -> int:
        with self._lock:
            return self._accumulator.point_count

    @property
    def is_closed(self) -> bool:
        with self._lock:
            return self._closed

    @property
    def validation(self) -> Optional[ValidationResult]:
        with self._lock:
            return self._validation

    @property
    def manual_validation(self) -> bool:
        """True when validation ran because the user stopped before closing the loop."""

        with self._lock:
            return self._manual_validation

    @property
    def collision(self) -> CollisionResult:
        with self._lock:
            return self._last_collision

    @property
    def speed_warning(self) -> Optional[str]:
        with self._lock:
            return self._accumulator.speed_warning

    @property
    def error(self) -> Optional[TrackingAbortedError]:
        with self._lock:
            return self._error

    @property
    def started_at(self) -> Optional[datetime]:
        with self._lock:
            return self._started_at

    # -- lifecycle -------------------------------------------------------
    def start(self, owner_id: str, *, started_at: Optional[datetime] = None) -> CollisionResult:
        """Start tracking unless the current position is inside a foreign territory."""

        territories = self._territories()
        events: List[SessionEvent] = []
        with self._lock:
            if self._state is SessionState.TRACKING:
                raise TerritoryEngineError("A claim is already being tracked")
            if self._state is SessionState.ABORTED:
                raise TrackingAbortedError("Previous claim was aborted; reset before starting again")
            latest = self._feed.latest
            result = CollisionResult.safe()
            if latest is not None:
                result = self._collision.check_start(latest.point, owner_id, territories)
            if result.has_collision:
                self._last_collision = result
                events.append(SessionEvent(SessionEventKind.START_BLOCKED, result))
            else:
                self._reset_locked()
                self._owner_id = owner_id
                self._started_at = started_at or datetime.now(timezone.utc)
                self._state = SessionState.TRACKING
                self._sample_handle = self._scheduler.call_repeating(
                    self._sampling_interval_s, self.sample_now
                )
                self._collision_handle = self._scheduler.call_repeating(
                    self._collision_interval_s, self.check_collisions_now
                )
                events.append(SessionEvent(SessionEventKind.STARTED, owner_id))
        if result.has_collision:
            self._log.error("Claim start refused: %s", result.message)
        else:
            self._log.info("Territory tracking started")
        self._emit(events)
        return result

    def stop(self) -> Optional[ValidationResult]:
        """Stop tracking. Idempotent; validates an unclosed, non-empty path for feedback."""

        events: List[SessionEvent] = []
        with self._lock:
            if self._state is not SessionState.TRACKING:
                return self._validation
            self._state = SessionState.STOPPED
            self._cancel_timers_locked()
            path = self._accumulator.path
            if not self._closed and path:
                self._validation = self._validator.validate(path)
                self._validated_path = path
                self._manual_validation = True
                events.append(SessionEvent(SessionEventKind.VALIDATED, self._validation))
            events.append(SessionEvent(SessionEventKind.STOPPED, len(path)))
            validation = self._validation
        self._log.info("Tracking stopped with %d points", len(path))
        self._emit(events)
        return validation

    def reset(self) -> None:
        with self._lock:
            self._reset_locked()

    def dispose(self) -> None:
        with self._lock:
            self._reset_locked()
            self._listeners.clear()

    def claim_draft(self) -> Optional[ClaimDraft]:
        """The finished claim when its path passed validation, else None.

        The draft carries exactly the path that was validated; points sampled
        after the loop closed are not part of the claim.
        """

        with self._lock:
            if self._state is SessionState.TRACKING or self._validation is None:
                return None
            if not self._validation.passed or self._owner_id is None:
                return None
            return ClaimDraft(
                owner_id=self._owner_id,
                path=self._validated_path,
                validation=self._validation,
                started_at=self._started_at or datetime.now(timezone.utc),
            )

    # -- ticks -----------------------------------------------------------
    def sample_now(self) -> None:
        """Sampling tick: offer the feed's latest sample to the accumulator."""

        events: List[SessionEvent] = []
        with self._lock:
            if self._state is not SessionState.TRACKING:
                return
            sample = self._feed.latest
            if sample is None or sample == self._last_offered:
                return
            self._last_offered = sample
            result = self._accumulator.offer(sample)
            if result.status is OfferStatus.REJECTED_SPEED:
                self._abort_locked(result.error, events)
            elif result.accepted:
                events.append(SessionEvent(SessionEventKind.POINT_ACCEPTED, result))
                if result.status is OfferStatus.ACCEPTED_WITH_WARNING:
                    events.append(SessionEvent(SessionEventKind.SPEED_WARNING, result.warning))
                self._check_closure_locked(events)
        self._emit(events)

    def check_collisions_now(self) -> CollisionResult:
        """Collision tick: re-check the live path against foreign territories."""

        territories = self._territories()
        events: List[SessionEvent] = []
        with self._lock:
            if self._state is not SessionState.TRACKING or self._owner_id is None:
                return self._last_collision
            result = self._collision.check_path(
                self._accumulator.path, self._owner_id, territories
            )
            previous = self._last_collision.warning_level
            self._last_collision = result
            if result.warning_level is not previous:
                events.append(
                    SessionEvent(
                        SessionEventKind.WARNING_LEVEL_CHANGED,
                        (previous, result.warning_level),
                    )
                )
            if result.warning_level is WarningLevel.VIOLATION:
                self._abort_locked(
                    CollisionViolationError(result.message or "Territory collision"), events
                )
        self._emit(events)
        return result

    # -- internals -------------------------------------------------------
    def _check_closure_locked(self, events: List[SessionEvent]) -> None:
        if self._closed:
            return
        path = self._accumulator.path
        gap = self._closure.distance_to_start(path)
        if not self._closure.is_closed(path):
            if len(path) >= self._closure.min_points:
                self._log.info(
                    "%.1fm from start (need <= %.0fm)", gap, self._closure.threshold_m
                )
            return
        self._closed = True
        self._log.info("Loop closed %.1fm from start", gap)
        events.append(SessionEvent(SessionEventKind.CLOSED, gap))
        self._validation = self._validator.validate(path)
        self._validated_path = path
        events.append(SessionEvent(SessionEventKind.VALIDATED, self._validation))

    def _abort_locked(
        self, error: Optional[TrackingAbortedError], events: List[SessionEvent]
    ) -> None:
        # Observable state first, then scheduling, so no tick sees a half-stopped session.
        self._state = SessionState.ABORTED
        self._error = error or TrackingAbortedError("Tracking aborted")
        self._cancel_timers_locked()
        self._log.error("Tracking aborted: %s", self._error)
        events.append(SessionEvent(SessionEventKind.ABORTED, self._error))

    def _cancel_timers_locked(self) -> None:
        handles: Tuple[Optional[ScheduledHandle], ...] = (
            self._sample_handle,
            self._collision_handle,
        )
        self._sample_handle = None
        self._collision_handle = None
        for handle in handles:
            if handle is not None:
                handle.cancel()

    def _reset_locked(self) -> None:
        self._cancel_timers_locked()
        self._accumulator.reset()
        self._state = SessionState.IDLE
        self._owner_id = None
        self._started_at = None
        self._last_offered = None
        self._closed = False
        self._validation = None
        self._validated_path = ()
        self._manual_validation = False
        self._last_collision = CollisionResult.safe()
        self._error = None

    def _emit(self, events: Sequence[SessionEvent]) -> None:
        if not events:
            return
        with self._lock:
            listeners = list(self._listeners)
        for event in events:
            for listener in listeners:
                listener(event)


__all__ = [
    "TrackingSession",
    "SessionState",
    "SessionEvent",
    "SessionEventKind",
]
