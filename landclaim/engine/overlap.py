"""Shared-area measurement between a claim and existing territories.

Both rings are projected onto one local tangent plane (centred on the new
claim) so the intersection area comes out in square meters. Polygon clipping
is delegated to shapely.
"""

from dataclasses import dataclass
from typing import Iterable, Sequence

from shapely.geometry import Polygon
from shapely.validation import make_valid

from ..models.geo_point import RawPoint
from ..models.territory import Territory
from ..utils.geo_math import centroid, project_local

# Shared areas below this are float noise from rings that only touch
_SLIVER_SQM = 1e-6


@dataclass(frozen=True)
class Overlap:
    """Shared area between a proposed boundary and one territory."""

    territory_id: str
    owner_id: str
    area_square_meters: float


def _local_polygon(points: Sequence[RawPoint], origin: RawPoint) -> Polygon:
    polygon = Polygon(project_local(points, origin))
    if not polygon.is_valid:
        polygon = make_valid(polygon)
    return polygon


def measure_overlaps(
    boundary: Sequence[RawPoint], territories: Iterable[Territory]
) -> list[Overlap]:
    """Measure the area boundary shares with each territory.

    Args:
        boundary: Proposed ring (raw datum)
        territories: Candidate territories, e.g. from TerritoryStore.query_overlapping

    Returns:
        One Overlap per territory with a positive shared area, largest first
    """
    if len(boundary) < 3:
        return []

    origin = centroid(boundary)
    claim = _local_polygon(boundary, origin)

    overlaps = []
    for territory in territories:
        other = _local_polygon(territory.boundary, origin)
        if not claim.intersects(other):
            continue
        shared = claim.intersection(other).area
        if shared > _SLIVER_SQM:
            overlaps.append(
                Overlap(
                    territory_id=territory.id,
                    owner_id=territory.owner_id,
                    area_square_meters=shared,
                )
            )

    return sorted(overlaps, key=lambda o: o.area_square_meters, reverse=True)


def allowed_overlap_sqm(claim_area_sqm: float, tolerance_sqm: float, tolerance_ratio: float) -> float:
    """Largest shared area the overlap policy tolerates for one territory."""
    return max(tolerance_sqm, claim_area_sqm * tolerance_ratio)
