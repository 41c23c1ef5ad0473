"""Conversion between the device datum and the map-rendering datum.

GPS hardware reports WGS-84 coordinates. Maps of mainland China are drawn in
GCJ-02, a regionally obfuscated grid offset by 100-500 m. Without conversion a
walked path is drawn beside the streets the player actually walked.

Only map-overlay drawing may use RenderPoint values. Area, closure, overlap and
ownership are always computed on RawPoint values.
"""

import math
from typing import Iterable

from ..models.geo_point import RawPoint, RenderPoint

# Krasovsky 1940 ellipsoid
_SEMI_MAJOR_AXIS = 6378245.0
_ECCENTRICITY_SQ = 0.00669342162296594323

# Rough bounds of the region where the offset applies
_REGION_MIN_LON = 72.004
_REGION_MAX_LON = 137.8347
_REGION_MIN_LAT = 0.8293
_REGION_MAX_LAT = 55.8271

_INVERSE_MAX_ITERATIONS = 10
_INVERSE_TOLERANCE_DEG = 1e-10


def is_outside_region(latitude: float, longitude: float) -> bool:
    """True where no datum offset applies and both datums coincide."""
    return not (
        _REGION_MIN_LON <= longitude <= _REGION_MAX_LON
        and _REGION_MIN_LAT <= latitude <= _REGION_MAX_LAT
    )


def _transform_lat(x: float, y: float) -> float:
    ret = -100.0 + 2.0 * x + 3.0 * y + 0.2 * y * y + 0.1 * x * y + 0.2 * math.sqrt(abs(x))
    ret += (20.0 * math.sin(6.0 * x * math.pi) + 20.0 * math.sin(2.0 * x * math.pi)) * 2.0 / 3.0
    ret += (20.0 * math.sin(y * math.pi) + 40.0 * math.sin(y / 3.0 * math.pi)) * 2.0 / 3.0
    ret += (160.0 * math.sin(y / 12.0 * math.pi) + 320.0 * math.sin(y * math.pi / 30.0)) * 2.0 / 3.0
    return ret


def _transform_lon(x: float, y: float) -> float:
    ret = 300.0 + x + 2.0 * y + 0.1 * x * x + 0.1 * x * y + 0.1 * math.sqrt(abs(x))
    ret += (20.0 * math.sin(6.0 * x * math.pi) + 20.0 * math.sin(2.0 * x * math.pi)) * 2.0 / 3.0
    ret += (20.0 * math.sin(x * math.pi) + 40.0 * math.sin(x / 3.0 * math.pi)) * 2.0 / 3.0
    ret += (150.0 * math.sin(x / 12.0 * math.pi) + 300.0 * math.sin(x / 30.0 * math.pi)) * 2.0 / 3.0
    return ret


def _offset(latitude: float, longitude: float) -> tuple[float, float]:
    """Datum offset (dlat, dlon) in degrees at a WGS-84 position."""
    d_lat = _transform_lat(longitude - 105.0, latitude - 35.0)
    d_lon = _transform_lon(longitude - 105.0, latitude - 35.0)

    rad_lat = latitude / 180.0 * math.pi
    magic = 1 - _ECCENTRICITY_SQ * math.sin(rad_lat) ** 2
    sqrt_magic = math.sqrt(magic)

    d_lat = (d_lat * 180.0) / ((_SEMI_MAJOR_AXIS * (1 - _ECCENTRICITY_SQ)) / (magic * sqrt_magic) * math.pi)
    d_lon = (d_lon * 180.0) / (_SEMI_MAJOR_AXIS / sqrt_magic * math.cos(rad_lat) * math.pi)
    return d_lat, d_lon


def to_render_datum(point: RawPoint) -> RenderPoint:
    """Convert a device (WGS-84) point to the map datum (GCJ-02).

    Args:
        point: Raw device point

    Returns:
        Point to draw on the map overlay
    """
    if not isinstance(point, RawPoint):
        raise TypeError(f"to_render_datum expects a RawPoint, got {type(point).__name__}")
    if is_outside_region(point.latitude, point.longitude):
        return RenderPoint(latitude=point.latitude, longitude=point.longitude)

    d_lat, d_lon = _offset(point.latitude, point.longitude)
    return RenderPoint(latitude=point.latitude + d_lat, longitude=point.longitude + d_lon)


def to_raw_datum(point: RenderPoint) -> RawPoint:
    """Approximate inverse of to_render_datum.

    Solves raw + offset(raw) = render by fixed-point iteration. The first
    iteration is the usual single-step approximation (error of a few meters);
    a handful more bring the round-trip error below a millimetre.

    Args:
        point: Map-datum point (e.g. a tap on the map)

    Returns:
        Device-datum point suitable for game-logic geometry
    """
    if not isinstance(point, RenderPoint):
        raise TypeError(f"to_raw_datum expects a RenderPoint, got {type(point).__name__}")
    if is_outside_region(point.latitude, point.longitude):
        return RawPoint(latitude=point.latitude, longitude=point.longitude)

    lat, lon = point.latitude, point.longitude
    for _ in range(_INVERSE_MAX_ITERATIONS):
        d_lat, d_lon = _offset(lat, lon)
        next_lat = point.latitude - d_lat
        next_lon = point.longitude - d_lon
        converged = (
            abs(next_lat - lat) < _INVERSE_TOLERANCE_DEG
            and abs(next_lon - lon) < _INVERSE_TOLERANCE_DEG
        )
        lat, lon = next_lat, next_lon
        if converged:
            break

    return RawPoint(latitude=lat, longitude=lon)


def render_path(points: Iterable[RawPoint]) -> list[RenderPoint]:
    """Convert a whole path for drawing."""
    return [to_render_datum(p) for p in points]
