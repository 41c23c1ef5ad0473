"""Geographic point value types.

Two datums exist in the game. RawPoint holds device coordinates (WGS-84) and
is the only type game-logic geometry accepts. RenderPoint holds map-overlay
coordinates (GCJ-02) and is produced solely by utils.coordinates for drawing.
Keeping them as separate types lets reviewers and type checkers catch a polygon
test that mixes the two.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class GeoPoint:
    """Latitude/longitude pair in decimal degrees."""

    latitude: float
    longitude: float

    def __post_init__(self):
        """Validate coordinate ranges after initialization."""
        if not (-90.0 <= self.latitude <= 90.0):
            raise ValueError(f"Invalid latitude: {self.latitude} (must be -90..90)")
        if not (-180.0 <= self.longitude <= 180.0):
            raise ValueError(f"Invalid longitude: {self.longitude} (must be -180..180)")

    def as_dict(self) -> dict[str, float]:
        return {"lat": self.latitude, "lon": self.longitude}


@dataclass(frozen=True)
class RawPoint(GeoPoint):
    """Point in the raw device datum (WGS-84)."""


@dataclass(frozen=True)
class RenderPoint(GeoPoint):
    """Point in the map-rendering datum (GCJ-02). Never used for game logic."""


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned latitude/longitude bounds."""

    min_lat: float
    max_lat: float
    min_lon: float
    max_lon: float

    def __post_init__(self):
        """Validate that the box is not inverted."""
        if self.min_lat > self.max_lat:
            raise ValueError(f"Invalid bounding box: min_lat {self.min_lat} > max_lat {self.max_lat}")
        if self.min_lon > self.max_lon:
            raise ValueError(f"Invalid bounding box: min_lon {self.min_lon} > max_lon {self.max_lon}")

    @property
    def center(self) -> RawPoint:
        return RawPoint(
            latitude=(self.min_lat + self.max_lat) / 2,
            longitude=(self.min_lon + self.max_lon) / 2,
        )

    def contains(self, point: GeoPoint) -> bool:
        return (
            self.min_lat <= point.latitude <= self.max_lat
            and self.min_lon <= point.longitude <= self.max_lon
        )

    def intersects(self, other: "BoundingBox") -> bool:
        return not (
            other.min_lat > self.max_lat
            or other.max_lat < self.min_lat
            or other.min_lon > self.max_lon
            or other.max_lon < self.min_lon
        )

    def expanded(self, degrees_lat: float, degrees_lon: float) -> "BoundingBox":
        """Return a copy grown by the given margins, clamped to valid ranges."""
        return BoundingBox(
            min_lat=max(-90.0, self.min_lat - degrees_lat),
            max_lat=min(90.0, self.max_lat + degrees_lat),
            min_lon=max(-180.0, self.min_lon - degrees_lon),
            max_lon=min(180.0, self.max_lon + degrees_lon),
        )
