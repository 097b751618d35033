"""Path tracking: sample filtering, closure detection and the claim session."""

from .accumulator import OfferResult, OfferStatus, PathAccumulator
from .closure import ClosureDetector
from .session import SessionEvent, SessionEventKind, SessionState, TrackingSession

__all__ = [
    "PathAccumulator",
    "OfferResult",
    "OfferStatus",
    "ClosureDetector",
    "TrackingSession",
    "SessionState",
    "SessionEvent",
    "SessionEventKind",
]
