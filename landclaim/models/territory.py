"""Territory data model."""

from dataclasses import dataclass, replace
from datetime import datetime

from shapely.geometry import Polygon

from .geo_point import BoundingBox, RawPoint


@dataclass(frozen=True)
class Territory:
    """A committed, owned piece of land.

    Territories are created once by the validator and never mutated. Building
    placement and map rendering share them without locking. Renaming and
    removal are metadata-only and yield a replaced record (see with_name and
    deactivated); the boundary never changes.
    """

    id: str
    owner_id: str
    boundary: tuple[RawPoint, ...]  # Implicitly closed ring, first != last
    area_square_meters: float
    bounding_box: BoundingBox
    created_at: datetime
    claim_attempt_id: str | None = None  # Client-generated, deduplicates retries
    name: str | None = None
    is_active: bool = True
    started_at: datetime | None = None  # When the claim walk began
    completed_at: datetime | None = None  # When the loop closed

    def __post_init__(self):
        """Validate territory data after initialization."""
        if not self.id:
            raise ValueError("id cannot be empty")
        if not self.owner_id:
            raise ValueError("owner_id cannot be empty")
        if len(self.boundary) < 3:
            raise ValueError(f"Invalid boundary: {len(self.boundary)} points (must be >= 3)")
        for point in self.boundary:
            if not isinstance(point, RawPoint):
                raise TypeError(
                    f"Territory boundary must hold RawPoint values, got {type(point).__name__}"
                )
        for a, b in zip(self.boundary, self.boundary[1:]):
            if a == b:
                raise ValueError(f"Duplicate consecutive boundary point: {a}")
        if self.boundary[0] == self.boundary[-1]:
            raise ValueError("Boundary must not repeat its first point at the end")
        if self.area_square_meters < 0:
            raise ValueError(
                f"Invalid area_square_meters: {self.area_square_meters} (must be >= 0)"
            )

    @property
    def point_count(self) -> int:
        return len(self.boundary)

    @property
    def center(self) -> RawPoint:
        """Center of the bounding box."""
        return self.bounding_box.center

    def to_wkt(self) -> str:
        """Boundary as a WKT POLYGON in "longitude latitude" order, ring closed."""
        return Polygon([(p.longitude, p.latitude) for p in self.boundary]).wkt

    def with_name(self, name: str | None) -> "Territory":
        return replace(self, name=name)

    def deactivated(self) -> "Territory":
        return replace(self, is_active=False)
