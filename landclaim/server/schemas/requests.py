"""Pydantic request schemas for API endpoints."""

from datetime import datetime

from pydantic import BaseModel, Field


class StartClaimRequest(BaseModel):
    """Request to start walking a new claim."""

    ownerId: str = Field(min_length=1, description="Player starting the claim")  # noqa: N815
    claimAttemptId: str | None = Field(  # noqa: N815
        default=None,
        description="Client-generated claim attempt ID; a uuid4 is generated if omitted",
    )


class FixRequest(BaseModel):
    """One location sample from the device."""

    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    timestamp: datetime = Field(description="ISO 8601 with timezone offset")
    accuracy: float = Field(default=5.0, ge=0, description="Horizontal accuracy in meters")
    speed: float | None = Field(default=None, description="Device-reported speed in m/s")


class SubmitFixesRequest(BaseModel):
    """Batch of fixes, in the order the device produced them."""

    fixes: list[FixRequest] = Field(min_length=1)


class RenameTerritoryRequest(BaseModel):
    """Metadata-only change to a territory."""

    name: str | None = Field(default=None, max_length=100)
