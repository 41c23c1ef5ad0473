"""Utility functions and constants for the land claim engine."""

from .claim_log import ClaimLogBuffer, install_claim_log
from .coordinates import render_path, to_raw_datum, to_render_datum
from .geo_math import (
    bounding_box,
    centroid,
    distance_meters,
    distance_to_segment_meters,
    is_simple_polygon,
    path_length_meters,
    point_in_polygon,
    polygon_area_square_meters,
    project_local,
    segments_intersect,
)

__all__ = [
    "ClaimLogBuffer",
    "install_claim_log",
    "render_path",
    "to_raw_datum",
    "to_render_datum",
    "bounding_box",
    "centroid",
    "distance_meters",
    "distance_to_segment_meters",
    "is_simple_polygon",
    "path_length_meters",
    "point_in_polygon",
    "polygon_area_square_meters",
    "project_local",
    "segments_intersect",
]
