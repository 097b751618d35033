"""GPS territory claim engine."""

from .claims import ClaimService
from .collision import CollisionDetector
from .errors import (
    ClaimRejectedError,
    CollisionViolationError,
    SpeedViolationError,
    TerritoryEngineError,
    TerritoryStoreError,
    TrackingAbortedError,
)
from .exploration import ExplorationTracker
from .location import LocationFeed
from .logbook import LogBook, attach_logbook, detach_logbook
from .models import (
    ClaimDraft,
    CollisionKind,
    CollisionResult,
    ExplorationSummary,
    GeoPoint,
    LocationSample,
    Territory,
    ValidationFailure,
    ValidationResult,
    WarningLevel,
)
from .scheduler import ManualScheduler, ThreadingScheduler
from .store import InMemoryTerritoryStore, RestTerritoryStore, TerritoryCatalog
from .tracking import ClosureDetector, PathAccumulator, TrackingSession
from .transform import transform, transform_path
from .validation import TerritoryValidator

__all__ = [
    "ClaimService",
    "CollisionDetector",
    "ExplorationTracker",
    "LocationFeed",
    "LogBook",
    "attach_logbook",
    "detach_logbook",
    "ManualScheduler",
    "ThreadingScheduler",
    "InMemoryTerritoryStore",
    "RestTerritoryStore",
    "TerritoryCatalog",
    "ClosureDetector",
    "PathAccumulator",
    "TrackingSession",
    "TerritoryValidator",
    "transform",
    "transform_path",
    "GeoPoint",
    "LocationSample",
    "Territory",
    "ClaimDraft",
    "CollisionKind",
    "CollisionResult",
    "ExplorationSummary",
    "ValidationFailure",
    "ValidationResult",
    "WarningLevel",
    "TerritoryEngineError",
    "TrackingAbortedError",
    "SpeedViolationError",
    "CollisionViolationError",
    "TerritoryStoreError",
    "ClaimRejectedError",
]
