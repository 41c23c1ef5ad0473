"""Pydantic response schemas for API endpoints."""

from pydantic import BaseModel, Field


class PointResponse(BaseModel):
    lat: float
    lon: float


class TerritoryResponse(BaseModel):
    """A committed territory, with its boundary in both datums."""

    id: str
    ownerId: str  # noqa: N815
    name: str | None = None
    path: list[PointResponse]
    renderPath: list[PointResponse]  # noqa: N815
    areaSqm: float  # noqa: N815
    pointCount: int  # noqa: N815
    isActive: bool  # noqa: N815
    bbox: dict[str, float]
    claimAttemptId: str | None = None  # noqa: N815
    startedAt: str | None = None  # noqa: N815
    completedAt: str | None = None  # noqa: N815
    createdAt: str  # noqa: N815


class ClaimStateResponse(BaseModel):
    """Observable state of a claim in progress."""

    claimId: str  # noqa: N815
    ownerId: str  # noqa: N815
    trackingState: str  # noqa: N815
    version: int
    pathPointCount: int  # noqa: N815
    liveAreaEstimate: float  # noqa: N815
    isClosed: bool  # noqa: N815
    speedWarningActive: bool  # noqa: N815
    speedWarning: str | None = None  # noqa: N815
    timeSinceLastFix: float | None = None  # noqa: N815
    trackingDuration: float  # noqa: N815
    totalDistance: float  # noqa: N815
    lastRejection: str | None = None  # noqa: N815
    warningLevel: str  # noqa: N815
    warningMessage: str | None = None  # noqa: N815
    path: list[PointResponse]
    renderPath: list[PointResponse]  # noqa: N815


class StartClaimResponse(BaseModel):
    claimId: str  # noqa: N815
    ownerId: str  # noqa: N815
    state: ClaimStateResponse


class FixResultResponse(BaseModel):
    disposition: str
    version: int
    message: str | None = None


class SubmitFixesResponse(BaseModel):
    """Per-fix outcomes and the state after the whole batch."""

    results: list[FixResultResponse]
    state: ClaimStateResponse


class OverlapResponse(BaseModel):
    territoryId: str  # noqa: N815
    ownerId: str  # noqa: N815
    areaSqm: float  # noqa: N815


class CommitResponse(BaseModel):
    """Outcome of committing a closed claim."""

    accepted: bool
    territory: TerritoryResponse | None = None
    reason: str | None = None
    message: str | None = None
    overlaps: list[OverlapResponse] = Field(default_factory=list)
