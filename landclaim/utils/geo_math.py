"""Geometry on latitude/longitude points.

All functions are pure and deterministic so a server can re-run the exact
checks a client ran. Distances use the haversine formula. Areas and polygon
topology use an equirectangular projection onto a local tangent plane, which
is accurate well below 1% at city scale and avoids spherical-polygon math.

Every function refuses to mix RawPoint and RenderPoint values (TypeError).
"""

import math
from typing import Sequence

from ..models.geo_point import BoundingBox, GeoPoint
from .constants import EARTH_RADIUS_M

METERS_PER_DEGREE = math.pi * EARTH_RADIUS_M / 180.0

# Projected-plane tolerances
_ON_EDGE_TOLERANCE_M = 1e-6  # Points closer than this to an edge are on it
_COLLINEAR_SINE = 1e-9  # |sin(angle)| below this counts as collinear

XY = tuple[float, float]


def _ensure_single_datum(points: Sequence[GeoPoint]) -> None:
    kinds = {type(p) for p in points}
    if len(kinds) > 1:
        names = ", ".join(sorted(k.__name__ for k in kinds))
        raise TypeError(f"Cannot mix point datums in one computation: {names}")


def _wrap_degrees(delta: float) -> float:
    """Wrap a longitude difference into [-180, 180)."""
    return (delta + 180.0) % 360.0 - 180.0


def _open_ring(points: Sequence[GeoPoint]) -> list[GeoPoint]:
    """Drop an explicit closing vertex so the ring is implicitly closed."""
    ring = list(points)
    if len(ring) > 1 and ring[0] == ring[-1]:
        ring.pop()
    return ring


def distance_meters(a: GeoPoint, b: GeoPoint) -> float:
    """Great-circle distance between two points.

    Args:
        a: First point
        b: Second point (same datum as a)

    Returns:
        Distance in meters

    Examples:
        >>> round(distance_meters(RawPoint(0, 0), RawPoint(0.0009, 0)), 2)
        100.08
    """
    _ensure_single_datum((a, b))
    phi1 = math.radians(a.latitude)
    phi2 = math.radians(b.latitude)
    dphi = math.radians(b.latitude - a.latitude)
    dlmb = math.radians(_wrap_degrees(b.longitude - a.longitude))

    s = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlmb / 2) ** 2
    return 2 * EARTH_RADIUS_M * math.asin(math.sqrt(min(1.0, s)))


def path_length_meters(points: Sequence[GeoPoint]) -> float:
    """Sum of segment lengths along an open polyline."""
    return sum(distance_meters(a, b) for a, b in zip(points, points[1:]))


def centroid(points: Sequence[GeoPoint]) -> GeoPoint:
    """Arithmetic mean of the vertices, safe across the antimeridian.

    Raises:
        ValueError: If points is empty
    """
    if not points:
        raise ValueError("Cannot compute the centroid of an empty point sequence")
    _ensure_single_datum(points)

    ref_lon = points[0].longitude
    lat = sum(p.latitude for p in points) / len(points)
    lon_offset = sum(_wrap_degrees(p.longitude - ref_lon) for p in points) / len(points)
    lon = _wrap_degrees(ref_lon + lon_offset)
    return type(points[0])(latitude=lat, longitude=lon)


def project_local(points: Sequence[GeoPoint], origin: GeoPoint) -> list[XY]:
    """Project points onto a tangent plane centred on origin.

    Args:
        points: Points to project
        origin: Plane origin (same datum as points)

    Returns:
        (east, north) offsets in meters, one per input point
    """
    _ensure_single_datum([origin, *points])
    lon_scale = METERS_PER_DEGREE * math.cos(math.radians(origin.latitude))
    return [
        (
            _wrap_degrees(p.longitude - origin.longitude) * lon_scale,
            (p.latitude - origin.latitude) * METERS_PER_DEGREE,
        )
        for p in points
    ]


def polygon_area_square_meters(points: Sequence[GeoPoint]) -> float:
    """Area enclosed by an implicitly closed ring.

    Projects onto a plane centred on the vertex centroid and applies the
    shoelace formula. Winding order does not matter.

    Args:
        points: Ring vertices (an explicit closing vertex is tolerated)

    Returns:
        Area in square meters; 0.0 for fewer than 3 points
    """
    ring = _open_ring(points)
    if len(ring) < 3:
        return 0.0
    xy = project_local(ring, centroid(ring))
    return abs(_shoelace(xy))


def _shoelace(xy: Sequence[XY]) -> float:
    total = 0.0
    n = len(xy)
    for i in range(n):
        x1, y1 = xy[i]
        x2, y2 = xy[(i + 1) % n]
        total += x1 * y2 - x2 * y1
    return total / 2.0


def _cross(o: XY, a: XY, b: XY) -> float:
    return (a[0] - o[0]) * (b[1] - o[1]) - (a[1] - o[1]) * (b[0] - o[0])


def _orientation(o: XY, a: XY, b: XY) -> int:
    """Sign of the turn o->a->b: 1 left, -1 right, 0 collinear (within tolerance)."""
    cross = _cross(o, a, b)
    scale = math.hypot(a[0] - o[0], a[1] - o[1]) * math.hypot(b[0] - o[0], b[1] - o[1])
    if abs(cross) <= _COLLINEAR_SINE * scale:
        return 0
    return 1 if cross > 0 else -1


def _within_extent(p: XY, a: XY, b: XY) -> bool:
    """True if p lies inside the axis-aligned box spanned by a and b."""
    return (
        min(a[0], b[0]) - _ON_EDGE_TOLERANCE_M <= p[0] <= max(a[0], b[0]) + _ON_EDGE_TOLERANCE_M
        and min(a[1], b[1]) - _ON_EDGE_TOLERANCE_M <= p[1] <= max(a[1], b[1]) + _ON_EDGE_TOLERANCE_M
    )


def _segments_intersect_xy(p1: XY, p2: XY, p3: XY, p4: XY) -> bool:
    """Closed-segment intersection test; touching and collinear overlap count."""
    d1 = _orientation(p3, p4, p1)
    d2 = _orientation(p3, p4, p2)
    d3 = _orientation(p1, p2, p3)
    d4 = _orientation(p1, p2, p4)

    if d1 * d2 < 0 and d3 * d4 < 0:
        return True

    if d1 == 0 and _within_extent(p1, p3, p4):
        return True
    if d2 == 0 and _within_extent(p2, p3, p4):
        return True
    if d3 == 0 and _within_extent(p3, p1, p2):
        return True
    if d4 == 0 and _within_extent(p4, p1, p2):
        return True

    return False


def segments_intersect(p1: GeoPoint, p2: GeoPoint, p3: GeoPoint, p4: GeoPoint) -> bool:
    """Check whether segment p1-p2 intersects or touches segment p3-p4."""
    xy = project_local((p1, p2, p3, p4), centroid((p1, p2, p3, p4)))
    return _segments_intersect_xy(*xy)


def is_simple_polygon(points: Sequence[GeoPoint]) -> bool:
    """Check that an implicitly closed ring does not cross or touch itself.

    O(n^2) over edge pairs, fine for walked paths of tens to hundreds of
    points. A ring is not simple if:
    - it has fewer than 3 distinct vertices,
    - an edge has zero length,
    - two non-adjacent edges intersect or touch (e.g. a figure-eight),
    - two adjacent edges fold back over each other (an out-and-back spike).

    Args:
        points: Ring vertices (an explicit closing vertex is tolerated)

    Returns:
        True if the ring is a simple polygon
    """
    ring = _open_ring(points)
    n = len(ring)
    if n < 3:
        return False

    xy = project_local(ring, centroid(ring))
    edges = [(xy[i], xy[(i + 1) % n]) for i in range(n)]

    for a, b in edges:
        if math.hypot(b[0] - a[0], b[1] - a[1]) <= _ON_EDGE_TOLERANCE_M:
            return False

    # Adjacent edges share vertex v; they overlap when u and w leave v
    # along the same ray.
    for k in range(n):
        u, v, w = xy[k - 1], xy[k], xy[(k + 1) % n]
        if _orientation(v, u, w) == 0:
            dot = (u[0] - v[0]) * (w[0] - v[0]) + (u[1] - v[1]) * (w[1] - v[1])
            if dot > 0:
                return False

    for i in range(n):
        for j in range(i + 1, n):
            if j == i + 1 or (i == 0 and j == n - 1):
                continue
            if _segments_intersect_xy(*edges[i], *edges[j]):
                return False

    return True


def _distance_to_segment_xy(p: XY, a: XY, b: XY) -> float:
    dx, dy = b[0] - a[0], b[1] - a[1]
    length_sq = dx * dx + dy * dy
    if length_sq == 0:
        return math.hypot(p[0] - a[0], p[1] - a[1])
    t = max(0.0, min(1.0, ((p[0] - a[0]) * dx + (p[1] - a[1]) * dy) / length_sq))
    return math.hypot(p[0] - (a[0] + t * dx), p[1] - (a[1] + t * dy))


def distance_to_segment_meters(point: GeoPoint, a: GeoPoint, b: GeoPoint) -> float:
    """Shortest distance from point to segment a-b, in meters."""
    origin_xy, a_xy, b_xy = project_local((point, a, b), point)
    return _distance_to_segment_xy(origin_xy, a_xy, b_xy)


def point_in_polygon(point: GeoPoint, boundary: Sequence[GeoPoint]) -> bool:
    """Even-odd ray casting with an inclusive boundary.

    A point lying on an edge or vertex counts as inside, so a building placed
    right at the edge of a territory is accepted.

    Args:
        point: Point to test
        boundary: Ring vertices (same datum as point)

    Returns:
        True if the point is inside or on the boundary; False for fewer than
        3 boundary points
    """
    ring = _open_ring(boundary)
    if len(ring) < 3:
        return False

    # Project around the tested point so it sits at the origin
    xy = project_local(ring, point)
    n = len(xy)

    for i in range(n):
        if _distance_to_segment_xy((0.0, 0.0), xy[i], xy[(i + 1) % n]) <= _ON_EDGE_TOLERANCE_M:
            return True

    inside = False
    j = n - 1
    for i in range(n):
        xi, yi = xy[i]
        xj, yj = xy[j]
        if (yi > 0) != (yj > 0):
            x_cross = (xj - xi) * (0 - yi) / (yj - yi) + xi
            if 0 < x_cross:
                inside = not inside
        j = i

    return inside


def bounding_box(points: Sequence[GeoPoint]) -> BoundingBox:
    """Axis-aligned bounds of a point sequence.

    Raises:
        ValueError: If points is empty
    """
    if not points:
        raise ValueError("Cannot compute the bounding box of an empty point sequence")
    _ensure_single_datum(points)
    lats = [p.latitude for p in points]
    lons = [p.longitude for p in points]
    return BoundingBox(min_lat=min(lats), max_lat=max(lats), min_lon=min(lons), max_lon=max(lons))
