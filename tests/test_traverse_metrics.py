"""Tests for traverse reconstruction and polygon metrics."""

from __future__ import annotations

import math

import pytest

from geomatricula.geometry.metrics import (
    closure_error,
    closure_vector,
    compute_metrics,
    perimeter,
    shoelace_area,
)
from geomatricula.geometry.models import Segment
from geomatricula.geometry.traverse import (
    azimuth_from_delta,
    build_vertices,
    displacement,
    reconstruct,
    reconstruct_segment,
)
from tests.conftest import square_segments


def _reverse_traverse(segments: list[Segment]) -> list[Segment]:
    """Walk the same polygon in the opposite direction."""
    reversed_legs = list(reversed(segments))
    return reconstruct([
        Segment(
            index=i,
            bearing_raw=f"Az {(s.bearing_azimuth + 180.0) % 360.0}",
            distance_m=s.distance_m,
        )
        for i, s in enumerate(reversed_legs, start=1)
    ])


class TestDisplacement:
    def test_north_is_positive_y(self):
        dx, dy = displacement(0.0, 10.0)
        assert dx == pytest.approx(0.0, abs=1e-12)
        assert dy == pytest.approx(10.0)

    def test_east_is_positive_x(self):
        dx, dy = displacement(90.0, 10.0)
        assert dx == pytest.approx(10.0)
        assert dy == pytest.approx(0.0, abs=1e-12)

    @pytest.mark.parametrize("azimuth", [0.0, 12.5, 45.0, 90.0, 135.75, 180.0, 225.0, 270.0, 333.3, 359.9])
    def test_azimuth_round_trip(self, azimuth):
        dx, dy = displacement(azimuth, 37.5)
        assert azimuth_from_delta(dx, dy) == pytest.approx(azimuth, abs=1e-9)


class TestReconstruct:
    def test_derived_fields_are_recomputed(self):
        segment = Segment(
            index=1, bearing_raw="Az 90", distance_m=10.0,
            bearing_azimuth=12.0, delta_x=999.0, delta_y=-999.0,
        )
        rebuilt = reconstruct_segment(segment)
        assert rebuilt.bearing_azimuth == pytest.approx(90.0)
        assert rebuilt.delta_x == pytest.approx(10.0)
        assert rebuilt.delta_y == pytest.approx(0.0, abs=1e-12)

    def test_input_is_not_mutated(self):
        segment = Segment(index=1, bearing_raw="Az 90", distance_m=10.0)
        reconstruct_segment(segment)
        assert segment.delta_x == 0.0

    def test_sorted_by_index(self):
        legs = [
            Segment(index=3, bearing_raw="Az 180", distance_m=1.0),
            Segment(index=1, bearing_raw="Az 0", distance_m=1.0),
            Segment(index=2, bearing_raw="Az 90", distance_m=1.0),
        ]
        assert [s.index for s in reconstruct(legs)] == [1, 2, 3]

    def test_unparseable_bearing_points_north(self):
        (segment,) = reconstruct([Segment(index=1, bearing_raw="ilegível", distance_m=5.0)])
        assert segment.bearing_azimuth == 0.0
        assert segment.delta_y == pytest.approx(5.0)


class TestVertices:
    def test_origin_first_and_count(self):
        segments = reconstruct(square_segments())
        vertices = build_vertices(segments)
        assert len(vertices) == len(segments) + 1
        assert vertices[0] == (0.0, 0.0)

    def test_cumulative_sum(self):
        segments = reconstruct(square_segments(10.0))
        vertices = build_vertices(segments)
        assert vertices[1] == pytest.approx((0.0, 10.0), abs=1e-9)
        assert vertices[2] == pytest.approx((10.0, 10.0), abs=1e-9)

    def test_empty(self):
        assert build_vertices([]) == [(0.0, 0.0)]


class TestMetrics:
    def test_closed_square(self):
        metrics = compute_metrics(reconstruct(square_segments(100.0)))
        assert metrics.area == pytest.approx(10000.0)
        assert metrics.perimeter == pytest.approx(400.0)
        assert metrics.closure_error < 1e-6

    def test_winding_direction_does_not_change_area(self, rural_segments):
        forward = reconstruct(rural_segments)
        backward = _reverse_traverse(forward)
        assert shoelace_area(build_vertices(backward)) == pytest.approx(
            shoelace_area(build_vertices(forward)), rel=1e-9
        )

    def test_reversed_square_area(self):
        forward = reconstruct(square_segments(20.0))
        assert compute_metrics(_reverse_traverse(forward)).area == pytest.approx(400.0)

    def test_perimeter_uses_authored_distances(self):
        open_legs = reconstruct([
            Segment(index=1, bearing_raw="Az 0", distance_m=100.0),
            Segment(index=2, bearing_raw="Az 90", distance_m=100.0),
            Segment(index=3, bearing_raw="Az 180", distance_m=100.0),
        ])
        assert perimeter(open_legs) == pytest.approx(300.0)
        assert closure_error(open_legs) == pytest.approx(100.0)

    def test_closure_vector_is_raw_sum(self):
        legs = reconstruct([
            Segment(index=1, bearing_raw="Az 0", distance_m=10.0),
            Segment(index=2, bearing_raw="Az 90", distance_m=3.0),
        ])
        dx, dy = closure_vector(legs)
        assert dx == pytest.approx(3.0)
        assert dy == pytest.approx(10.0)
        assert closure_error(legs) == pytest.approx(math.hypot(3.0, 10.0))

    def test_rural_deed_traverse(self, rural_segments):
        metrics = compute_metrics(reconstruct(rural_segments))
        assert metrics.perimeter == pytest.approx(554.75)
        assert metrics.area == pytest.approx(13715.61, abs=1.0)
        assert metrics.closure_error == pytest.approx(74.81, abs=0.05)

    def test_empty_traverse(self):
        metrics = compute_metrics([])
        assert metrics.area == 0.0
        assert metrics.perimeter == 0.0
        assert metrics.closure_error == 0.0
