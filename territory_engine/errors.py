"""Central error types used across the engine."""

from __future__ import annotations


class TerritoryEngineError(RuntimeError):
    """Base error for territory engine failures."""


class TrackingAbortedError(TerritoryEngineError):
    """Raised when a session was force-stopped and must be reset before reuse."""


class SpeedViolationError(TrackingAbortedError):
    """Raised when movement exceeds the hard speed limit."""

    def __init__(self, speed_kmh: float, limit_kmh: float) -> None:
        super().__init__(
            f"Moving too fast ({speed_kmh:.1f} km/h > {limit_kmh:.0f} km/h), tracking stopped"
        )
        self.speed_kmh = speed_kmh
        self.limit_kmh = limit_kmh


class CollisionViolationError(TrackingAbortedError):
    """Raised when the path enters or crosses a territory owned by someone else."""


class TerritoryStoreError(TerritoryEngineError):
    """Raised when the territory store fails (network, storage or payload)."""


class ClaimRejectedError(TerritoryEngineError):
    """Raised when a claim is submitted without a passing validation result."""


__all__ = [
    "TerritoryEngineError",
    "TrackingAbortedError",
    "SpeedViolationError",
    "CollisionViolationError",
    "TerritoryStoreError",
    "ClaimRejectedError",
]
