"""Traverse reconstruction: azimuth/distance legs to planar displacements.

Azimuths are measured clockwise from local north (+Y), so east is +X:
``delta_x = d * sin(az)`` and ``delta_y = d * cos(az)``.
"""

from __future__ import annotations

import math
from typing import Iterable, Sequence

from geomatricula.geometry.bearing import normalize_azimuth, parse_bearing_to_azimuth
from geomatricula.geometry.models import Segment


Vertex = tuple[float, float]


def displacement(azimuth: float, distance: float) -> tuple[float, float]:
    """Return ``(delta_x, delta_y)`` for one leg."""
    radians = math.radians(azimuth)
    return distance * math.sin(radians), distance * math.cos(radians)


def reconstruct_segment(segment: Segment) -> Segment:
    """Return a copy of ``segment`` with azimuth and deltas recomputed.

    Whatever derived values the input carries are discarded.
    """
    azimuth = parse_bearing_to_azimuth(segment.bearing_raw)
    delta_x, delta_y = displacement(azimuth, segment.distance_m)
    return segment.model_copy(
        update={"bearing_azimuth": azimuth, "delta_x": delta_x, "delta_y": delta_y}
    )


def reconstruct(segments: Iterable[Segment]) -> list[Segment]:
    """Recompute derived fields for every segment, ordered by ``index``."""
    ordered = sorted(segments, key=lambda s: s.index)
    return [reconstruct_segment(s) for s in ordered]


def build_vertices(segments: Sequence[Segment]) -> list[Vertex]:
    """Cumulative vertex list starting at the origin.

    Has ``len(segments) + 1`` entries. The last one is the traverse endpoint,
    which only equals the origin when the traverse closes exactly.
    """
    x = y = 0.0
    vertices: list[Vertex] = [(0.0, 0.0)]
    for segment in segments:
        x += segment.delta_x
        y += segment.delta_y
        vertices.append((x, y))
    return vertices


def azimuth_from_delta(delta_x: float, delta_y: float) -> float:
    """Inverse of :func:`displacement`: direction of a displacement in ``[0, 360)``."""
    return normalize_azimuth(math.degrees(math.atan2(delta_x, delta_y)))
