"""Claiming engine components."""

from .claim_session import ClaimSession
from .path_tracker import FixDisposition, IngestResult, PathTracker, TrackerState, TrackerStatus
from .placement import can_place_building
from .proximity import CollisionResult, CollisionType, WarningLevel, assess_path
from .validator import ClaimResult, RejectionReason, TerritoryValidator

__all__ = [
    "ClaimSession",
    "FixDisposition",
    "IngestResult",
    "PathTracker",
    "TrackerState",
    "TrackerStatus",
    "can_place_building",
    "CollisionResult",
    "CollisionType",
    "WarningLevel",
    "assess_path",
    "ClaimResult",
    "RejectionReason",
    "TerritoryValidator",
]
