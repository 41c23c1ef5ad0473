"""Tests for distance, area, simplicity and containment geometry."""

import math

import pytest
from helpers import STEP, square

from landclaim.models import RawPoint, RenderPoint
from landclaim.utils.constants import EARTH_RADIUS_M
from landclaim.utils.geo_math import (
    bounding_box,
    centroid,
    distance_meters,
    distance_to_segment_meters,
    is_simple_polygon,
    path_length_meters,
    point_in_polygon,
    polygon_area_square_meters,
    segments_intersect,
)


def reference_rectangle_area(lat1, lon1, lat2, lon2):
    """Exact spherical area of a latitude/longitude rectangle."""
    return (
        EARTH_RADIUS_M**2
        * math.radians(abs(lon2 - lon1))
        * abs(math.sin(math.radians(lat2)) - math.sin(math.radians(lat1)))
    )


class TestDistance:
    """Tests for haversine distance."""

    def test_one_step_is_about_100_meters(self):
        """Test that 0.0009 degrees of latitude is about 100 m."""
        d = distance_meters(RawPoint(0, 0), RawPoint(STEP, 0))
        assert d == pytest.approx(100.08, abs=0.01)

    def test_distance_is_symmetric_and_zero_for_same_point(self):
        """Test symmetry and identity."""
        a, b = RawPoint(31.2304, 121.4737), RawPoint(31.2404, 121.4837)
        assert distance_meters(a, b) == pytest.approx(distance_meters(b, a))
        assert distance_meters(a, a) == 0

    def test_known_city_distance(self):
        """Test Paris to London against a reference value (~343.5 km)."""
        paris, london = RawPoint(48.8566, 2.3522), RawPoint(51.5074, -0.1278)
        assert distance_meters(paris, london) == pytest.approx(343_550, rel=0.005)

    def test_distance_across_antimeridian(self):
        """Test that crossing the antimeridian takes the short way."""
        d = distance_meters(RawPoint(0, 179.9995), RawPoint(0, -179.9995))
        assert d == pytest.approx(111.2, abs=0.5)

    def test_mixing_datums_raises(self):
        """Test that raw and render points cannot be mixed."""
        with pytest.raises(TypeError, match="Cannot mix"):
            distance_meters(RawPoint(0, 0), RenderPoint(0, 0))

    def test_path_length(self):
        """Test that path length sums the segments."""
        path = square()
        assert path_length_meters(path) == pytest.approx(3 * 100.08, rel=0.001)


class TestPolygonArea:
    """Tests for shoelace area on a local projection."""

    @pytest.mark.parametrize("count", [0, 1, 2])
    def test_fewer_than_three_points_is_zero(self, count):
        """Test that degenerate input has zero area."""
        points = list(square())[:count]
        assert polygon_area_square_meters(points) == 0

    def test_square_area(self):
        """Test the 100 m square."""
        assert polygon_area_square_meters(square()) == pytest.approx(100.08**2, rel=0.001)

    def test_winding_order_does_not_matter(self):
        """Test that clockwise and counter-clockwise rings give the same area."""
        ring = square(45, 7)
        assert polygon_area_square_meters(ring) == pytest.approx(
            polygon_area_square_meters(tuple(reversed(ring)))
        )

    def test_explicit_closing_vertex_is_ignored(self):
        """Test that repeating the first vertex does not change the area."""
        ring = square()
        assert polygon_area_square_meters(ring + (ring[0],)) == pytest.approx(
            polygon_area_square_meters(ring)
        )

    @pytest.mark.parametrize("lat", [0.0, 31.2, 45.0, 60.0])
    def test_city_scale_rectangle_within_one_percent(self, lat):
        """Test a ~1 km² rectangle against the exact spherical area."""
        size_lat, size_lon = 0.009, 0.009 / math.cos(math.radians(lat))
        ring = (
            RawPoint(lat, 10.0),
            RawPoint(lat, 10.0 + size_lon),
            RawPoint(lat + size_lat, 10.0 + size_lon),
            RawPoint(lat + size_lat, 10.0),
        )
        expected = reference_rectangle_area(lat, 10.0, lat + size_lat, 10.0 + size_lon)
        assert polygon_area_square_meters(ring) == pytest.approx(expected, rel=0.01)

    def test_city_scale_triangle_within_one_percent(self):
        """Test that a right triangle has half the rectangle's area."""
        lat, lon, size = 48.85, 2.35, 0.008
        triangle = (RawPoint(lat, lon), RawPoint(lat, lon + size), RawPoint(lat + size, lon))
        expected = reference_rectangle_area(lat, lon, lat + size, lon + size) / 2
        assert polygon_area_square_meters(triangle) == pytest.approx(expected, rel=0.01)

    def test_collinear_points_have_zero_area(self):
        """Test an out-and-back line."""
        line = (RawPoint(0, 0), RawPoint(0, 0.001), RawPoint(0, 0.002))
        assert polygon_area_square_meters(line) == pytest.approx(0, abs=1e-6)


class TestSimplePolygon:
    """Tests for self-intersection detection."""

    def test_square_is_simple(self):
        """Test that a plain square is simple."""
        assert is_simple_polygon(square())

    def test_figure_eight_is_not_simple(self):
        """Test that a walked figure-eight is rejected."""
        bowtie = (
            RawPoint(0, 0),
            RawPoint(0.001, 0.001),
            RawPoint(0.001, 0),
            RawPoint(0, 0.001),
        )
        assert not is_simple_polygon(bowtie)

    def test_double_loop_figure_eight_is_not_simple(self):
        """Test a figure-eight made of two loops crossing at one point."""
        eight = (
            RawPoint(0, 0),
            RawPoint(0.001, 0.001),
            RawPoint(0.002, 0),
            RawPoint(0.003, 0.001),
            RawPoint(0.003, 0),
            RawPoint(0.002, 0.001),
            RawPoint(0.001, 0),
            RawPoint(0, 0.001),
        )
        assert not is_simple_polygon(eight)

    def test_too_few_points_is_not_simple(self):
        """Test that two points cannot form a polygon."""
        assert not is_simple_polygon(square()[:2])

    def test_zero_length_edge_is_not_simple(self):
        """Test that a repeated vertex is rejected."""
        ring = square()
        assert not is_simple_polygon((ring[0], ring[1], ring[1], ring[2], ring[3]))

    def test_spike_is_not_simple(self):
        """Test that an out-and-back spike folding onto an edge is rejected."""
        spike = (
            RawPoint(0, 0),
            RawPoint(0, 0.002),
            RawPoint(0, 0.001),
            RawPoint(0.001, 0.001),
        )
        assert not is_simple_polygon(spike)

    def test_concave_polygon_is_simple(self):
        """Test that an L-shape is simple."""
        l_shape = (
            RawPoint(0, 0),
            RawPoint(0, 0.002),
            RawPoint(0.001, 0.002),
            RawPoint(0.001, 0.001),
            RawPoint(0.002, 0.001),
            RawPoint(0.002, 0),
        )
        assert is_simple_polygon(l_shape)

    def test_segments_intersect(self):
        """Test crossing, touching and disjoint segments."""
        a, b = RawPoint(0, 0), RawPoint(0.001, 0.001)
        assert segments_intersect(a, b, RawPoint(0, 0.001), RawPoint(0.001, 0))
        assert segments_intersect(a, b, b, RawPoint(0.002, 0))
        assert not segments_intersect(a, b, RawPoint(0, 0.002), RawPoint(0.001, 0.003))


class TestPointInPolygon:
    """Tests for ray casting with an inclusive boundary."""

    def test_inside_and_outside(self):
        """Test clear inside and outside points."""
        ring = square(size=0.001)
        assert point_in_polygon(RawPoint(0.0005, 0.0005), ring)
        assert not point_in_polygon(RawPoint(0.002, 0.0005), ring)
        assert not point_in_polygon(RawPoint(0.0005, -0.0001), ring)

    def test_point_on_edge_is_inside(self):
        """Test that a point exactly on an edge counts as inside."""
        ring = square(size=0.001)
        assert point_in_polygon(RawPoint(0, 0.0005), ring)
        assert point_in_polygon(RawPoint(0.0005, 0.001), ring)

    def test_vertex_is_inside(self):
        """Test that a vertex counts as inside."""
        ring = square(size=0.001)
        assert point_in_polygon(ring[2], ring)

    def test_concave_notch_is_outside(self):
        """Test a point in the notch of an L-shape."""
        l_shape = (
            RawPoint(0, 0),
            RawPoint(0, 0.002),
            RawPoint(0.001, 0.002),
            RawPoint(0.001, 0.001),
            RawPoint(0.002, 0.001),
            RawPoint(0.002, 0),
        )
        assert point_in_polygon(RawPoint(0.0015, 0.0005), l_shape)
        assert not point_in_polygon(RawPoint(0.0015, 0.0015), l_shape)

    def test_degenerate_boundary(self):
        """Test that fewer than 3 points contain nothing."""
        assert not point_in_polygon(RawPoint(0, 0), square()[:2])

    def test_mixing_datums_raises(self):
        """Test that a render point cannot be tested against a raw boundary."""
        with pytest.raises(TypeError):
            point_in_polygon(RenderPoint(0.0005, 0.0005), square())


class TestHelpers:
    """Tests for bounding box, centroid and segment distance."""

    def test_bounding_box(self):
        """Test bounds of a square."""
        box = bounding_box(square(1, 2, 0.5))
        assert (box.min_lat, box.max_lat, box.min_lon, box.max_lon) == (1, 1.5, 2, 2.5)

    def test_bounding_box_empty_raises(self):
        """Test that an empty sequence has no bounds."""
        with pytest.raises(ValueError, match="empty"):
            bounding_box([])

    def test_centroid_keeps_point_type(self):
        """Test that the centroid of render points is a render point."""
        c = centroid([RenderPoint(0, 0), RenderPoint(2, 2)])
        assert c == RenderPoint(1, 1)

    def test_distance_to_segment(self):
        """Test perpendicular and endpoint distances."""
        a, b = RawPoint(0, 0), RawPoint(0, 0.001)
        assert distance_to_segment_meters(RawPoint(STEP, 0.0005), a, b) == pytest.approx(
            100.08, rel=0.001
        )
        assert distance_to_segment_meters(RawPoint(0, 0.001 + STEP), a, b) == pytest.approx(
            100.08, rel=0.001
        )
