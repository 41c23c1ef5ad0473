"""Data models for the land claim engine."""

from .fix import Fix
from .geo_point import BoundingBox, GeoPoint, RawPoint, RenderPoint
from .territory import Territory
from .tracked_path import TrackedPath

__all__ = [
    "GeoPoint",
    "RawPoint",
    "RenderPoint",
    "BoundingBox",
    "Fix",
    "TrackedPath",
    "Territory",
]
