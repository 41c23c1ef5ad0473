"""Shared builders for land claim tests."""

from datetime import datetime, timedelta, timezone

from landclaim.config import ClaimConfig
from landclaim.errors import StorageError
from landclaim.models import Fix, RawPoint, Territory
from landclaim.stores import InMemoryTerritoryStore
from landclaim.utils.geo_math import bounding_box, polygon_area_square_meters

T0 = datetime(2026, 5, 1, 8, 0, 0, tzinfo=timezone.utc)

# 0.0009 degrees is about 100 m at the equator
STEP = 0.0009


def fast_config(**overrides) -> ClaimConfig:
    """Config with a short closure minimum and no retry back-off."""
    values = {
        "min_closure_points": 4,
        "storage_retry_wait_min_s": 0,
        "storage_retry_wait_max_s": 0,
    }
    values.update(overrides)
    return ClaimConfig(**values)


def fix_at(lat: float, lon: float, seconds: float, accuracy: float = 5.0, speed=None) -> Fix:
    return Fix.at(lat, lon, T0 + timedelta(seconds=seconds), accuracy, speed)


def square(lat: float = 0.0, lon: float = 0.0, size: float = STEP) -> tuple[RawPoint, ...]:
    """Counter-clockwise square with its south-west corner at (lat, lon)."""
    return (
        RawPoint(lat, lon),
        RawPoint(lat, lon + size),
        RawPoint(lat + size, lon + size),
        RawPoint(lat + size, lon),
    )


def square_walk(lat: float = 0.0, lon: float = 0.0, size: float = STEP) -> list[Fix]:
    """Fixes walking the square 30 s per side, ending just beside the start."""
    corners = square(lat, lon, size)
    fixes = [fix_at(p.latitude, p.longitude, 30 * i) for i, p in enumerate(corners)]
    fixes.append(fix_at(lat + 0.00005, lon + 0.00005, 30 * len(corners)))
    return fixes


def make_territory(
    boundary,
    owner_id: str = "owner-b",
    territory_id: str = "t-1",
    claim_attempt_id: str | None = None,
    created_at: datetime = T0,
) -> Territory:
    boundary = tuple(boundary)
    return Territory(
        id=territory_id,
        owner_id=owner_id,
        boundary=boundary,
        area_square_meters=polygon_area_square_meters(boundary),
        bounding_box=bounding_box(boundary),
        created_at=created_at,
        claim_attempt_id=claim_attempt_id,
    )


class LostAckStore(InMemoryTerritoryStore):
    """Stores the territory, then fails as if the response was lost."""

    def __init__(self, lost_acks: int = 1, territories=()):
        super().__init__(territories)
        self.lost_acks = lost_acks
        self.commit_calls = 0

    async def commit(self, territory):
        self.commit_calls += 1
        territory_id = await super().commit(territory)
        if self.lost_acks > 0:
            self.lost_acks -= 1
            raise StorageError("connection reset while reading response")
        return territory_id


class BrokenStore(InMemoryTerritoryStore):
    """Every commit fails before anything is stored."""

    def __init__(self, retryable: bool = True):
        super().__init__()
        self.retryable = retryable
        self.commit_calls = 0

    async def commit(self, territory):
        self.commit_calls += 1
        raise StorageError("database unavailable", retryable=self.retryable)
