"""Polygon metrics: Shoelace area, authored perimeter and closure error."""

from __future__ import annotations

import math
from typing import Sequence

from geomatricula.geometry.models import PolygonMetrics, Segment
from geomatricula.geometry.traverse import Vertex, build_vertices


def shoelace_area(vertices: Sequence[Vertex]) -> float:
    """Unsigned area of the polygon described by ``vertices``.

    The list is walked pairwise as given; callers pass the full ``n + 1``
    traverse vertex list, whose last point is the cumulative endpoint.
    """
    twice_area = 0.0
    for (x0, y0), (x1, y1) in zip(vertices, vertices[1:]):
        twice_area += x0 * y1 - x1 * y0
    return abs(twice_area) / 2.0


def perimeter(segments: Sequence[Segment]) -> float:
    """Sum of the authored distances, independent of closure error."""
    return sum(s.distance_m for s in segments)


def closure_vector(segments: Sequence[Segment]) -> tuple[float, float]:
    """Residual ``(sum dx, sum dy)`` of the traverse."""
    return sum(s.delta_x for s in segments), sum(s.delta_y for s in segments)


def closure_error(segments: Sequence[Segment]) -> float:
    """Distance between the traverse endpoint and its origin."""
    dx, dy = closure_vector(segments)
    return math.hypot(dx, dy)


def compute_metrics(segments: Sequence[Segment]) -> PolygonMetrics:
    """Compute all metrics for segments whose deltas are already reconstructed."""
    dx, dy = closure_vector(segments)
    return PolygonMetrics(
        area=shoelace_area(build_vertices(segments)),
        perimeter=perimeter(segments),
        closure_error=math.hypot(dx, dy),
        closure_dx=dx,
        closure_dy=dy,
    )
