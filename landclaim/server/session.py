"""Claim session management for the HTTP API."""

import asyncio
import logging
from datetime import datetime

from ..config import ClaimConfig
from ..engine.claim_session import ClaimSession
from ..engine.path_tracker import TrackerState
from ..engine.proximity import CollisionResult
from ..engine.validator import ClaimResult, TerritoryValidator
from ..models.geo_point import GeoPoint
from ..models.territory import Territory
from ..stores.territory_store import TerritoryStore
from ..utils.coordinates import render_path
from .schemas.responses import (
    ClaimStateResponse,
    CommitResponse,
    OverlapResponse,
    PointResponse,
    TerritoryResponse,
)

logger = logging.getLogger(__name__)

_OPEN_STATES = (TrackerState.TRACKING, TrackerState.CLOSED)


class ActiveClaimError(Exception):
    """The owner already has a claim in TRACKING or CLOSED state."""

    def __init__(self, owner_id: str, claim_id: str):
        super().__init__(f"Owner {owner_id} already has an active claim {claim_id}")
        self.owner_id = owner_id
        self.claim_id = claim_id


class ClaimSessionManager:
    """All claim sessions on this server, at most one open claim per owner.

    In-memory; sessions are lost on restart while committed territories live
    in the store. All sessions share one commit lock, so two overlapping
    claims committed at the same moment cannot both be accepted.
    """

    def __init__(self, store: TerritoryStore, config: ClaimConfig | None = None):
        self.store = store
        self.config = config or ClaimConfig()
        self.sessions: dict[str, ClaimSession] = {}
        self._by_owner: dict[str, str] = {}
        self._commit_lock = asyncio.Lock()

    async def create_session(
        self, owner_id: str, claim_attempt_id: str | None = None
    ) -> ClaimSession:
        """Start a new claim for owner_id.

        A previous session of the same owner that is already committed or
        discarded is replaced.

        Raises:
            ActiveClaimError: If the owner is still walking or has an uncommitted loop
        """
        previous_id = self._by_owner.get(owner_id)
        if previous_id is not None:
            previous = self.sessions.get(previous_id)
            if previous is not None and previous.tracking_state in _OPEN_STATES:
                raise ActiveClaimError(owner_id, previous_id)
            self.sessions.pop(previous_id, None)

        if claim_attempt_id and claim_attempt_id in self.sessions:
            raise ActiveClaimError(self.sessions[claim_attempt_id].owner_id, claim_attempt_id)

        validator = TerritoryValidator(self.store, self.config, commit_lock=self._commit_lock)
        session = ClaimSession(owner_id, self.store, self.config, validator=validator)
        await session.start(claim_attempt_id)
        claim_id = session.claim_attempt_id

        self.sessions[claim_id] = session
        self._by_owner[owner_id] = claim_id
        logger.info(f"Created claim {claim_id} for owner {owner_id}")
        return session

    def get(self, claim_id: str) -> ClaimSession | None:
        return self.sessions.get(claim_id)

    async def delete(self, claim_id: str) -> bool:
        """Discard a claim and forget its session.

        Returns:
            True if deleted, False if not found
        """
        session = self.sessions.pop(claim_id, None)
        if session is None:
            return False
        if self._by_owner.get(session.owner_id) == claim_id:
            del self._by_owner[session.owner_id]
        await session.discard()
        logger.info(f"Deleted claim {claim_id}")
        return True

    async def cleanup_all(self):
        """Discard every session (called on shutdown)."""
        logger.info(f"Cleaning up {len(self.sessions)} claim sessions")
        for session in self.sessions.values():
            await session.discard()
        self.sessions.clear()
        self._by_owner.clear()


# ============================================
# SERIALIZATION FOR API RESPONSES
# ============================================


def _points(points: list[GeoPoint] | tuple[GeoPoint, ...]) -> list[PointResponse]:
    return [PointResponse(lat=p.latitude, lon=p.longitude) for p in points]


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def serialize_territory(territory: Territory) -> TerritoryResponse:
    box = territory.bounding_box
    return TerritoryResponse(
        id=territory.id,
        ownerId=territory.owner_id,
        name=territory.name,
        path=_points(territory.boundary),
        renderPath=_points(render_path(territory.boundary)),
        areaSqm=territory.area_square_meters,
        pointCount=territory.point_count,
        isActive=territory.is_active,
        bbox={
            "minLat": box.min_lat,
            "maxLat": box.max_lat,
            "minLon": box.min_lon,
            "maxLon": box.max_lon,
        },
        claimAttemptId=territory.claim_attempt_id,
        startedAt=_iso(territory.started_at),
        completedAt=_iso(territory.completed_at),
        createdAt=territory.created_at.isoformat(),
    )


def serialize_state(
    session: ClaimSession, collision: CollisionResult | None = None
) -> ClaimStateResponse:
    """Snapshot of the session's observables.

    Args:
        session: Claim session to describe
        collision: Latest proximity check, if one was run
    """
    status = session.status()
    snapshot = session.snapshot
    collision = collision or CollisionResult.safe()
    return ClaimStateResponse(
        claimId=session.claim_attempt_id or "",
        ownerId=session.owner_id,
        trackingState=status.tracking_state.value,
        version=status.version,
        pathPointCount=status.path_point_count,
        liveAreaEstimate=status.live_area_estimate,
        isClosed=status.is_closed,
        speedWarningActive=status.speed_warning_active,
        speedWarning=status.speed_warning,
        timeSinceLastFix=status.time_since_last_fix,
        trackingDuration=status.tracking_duration,
        totalDistance=status.total_distance_m,
        lastRejection=status.last_rejection,
        warningLevel=collision.warning_level.name.lower(),
        warningMessage=collision.message,
        path=_points(snapshot.points),
        renderPath=_points(render_path(snapshot.points)),
    )


def serialize_commit(result: ClaimResult) -> CommitResponse:
    return CommitResponse(
        accepted=result.accepted,
        territory=serialize_territory(result.territory) if result.territory else None,
        reason=result.reason.value if result.reason else None,
        message=result.message,
        overlaps=[
            OverlapResponse(
                territoryId=o.territory_id, ownerId=o.owner_id, areaSqm=o.area_square_meters
            )
            for o in result.overlaps
        ],
    )
