"""AutoCAD DXF drawing of a reconstructed parcel, in local planar meters."""

from __future__ import annotations

import io
import logging
from typing import Sequence

import ezdxf
from ezdxf import units

from geomatricula.core.config import ExportConfig
from geomatricula.export.kml import truncate
from geomatricula.geometry.models import ParcelResult, Segment
from geomatricula.geometry.traverse import Vertex, build_vertices

logger = logging.getLogger(__name__)

LAYER_BOUNDARY = "PARCEL_BOUNDARY"
LAYER_POINTS = "PARCEL_POINTS"
LAYER_TEXT = "PARCEL_TEXT"
LAYER_BEARINGS = "PARCEL_BEARINGS"
LAYER_NEIGHBORS = "PARCEL_NEIGHBORS"

# name -> ACI color
LAYERS: dict[str, int] = {
    LAYER_BOUNDARY: 3,
    LAYER_POINTS: 5,
    LAYER_TEXT: 7,
    LAYER_BEARINGS: 1,
    LAYER_NEIGHBORS: 4,
}

LABEL_OFFSET = 2.0
LABEL_HEIGHT = 2.0
BEARING_OFFSET = -3.0
BEARING_HEIGHT = 1.5
NEIGHBOR_OFFSET = 3.0
NEIGHBOR_HEIGHT = 1.2
TITLE_OFFSET = -10.0
TITLE_HEIGHT = 2.5
SUMMARY_OFFSET = -15.0
SUMMARY_HEIGHT = 2.0


def polygon_vertices(segments: Sequence[Segment], center: bool = False) -> list[Vertex]:
    """The ``n`` corner points of the polygon, origin first.

    The traverse endpoint is dropped: the closed polyline returns to the
    origin on its own. With ``center`` the points are translated so the
    bounding box is centered on (0, 0).
    """
    vertices = build_vertices(segments)[:-1]
    if not center or not vertices:
        return vertices
    xs = [x for x, _ in vertices]
    ys = [y for _, y in vertices]
    cx = (min(xs) + max(xs)) / 2
    cy = (min(ys) + max(ys)) / 2
    return [(x - cx, y - cy) for x, y in vertices]


def segment_midpoints(vertices: Sequence[Vertex]) -> list[Vertex]:
    """Midpoint of each polygon edge; the last edge wraps back to vertex 0."""
    count = len(vertices)
    return [
        ((vertices[i][0] + vertices[(i + 1) % count][0]) / 2,
         (vertices[i][1] + vertices[(i + 1) % count][1]) / 2)
        for i in range(count)
    ]


def _add_text(msp, text: str, x: float, y: float, height: float, layer: str) -> None:
    msp.add_text(text, height=height, dxfattribs={"layer": layer}).set_placement((x, y))


def build_dxf_document(
    result: ParcelResult,
    title: str = "GeoMatrícula",
    config: ExportConfig | None = None,
):
    """Build an ezdxf document for ``result``.

    Layout:
        - closed LWPOLYLINE on ``PARCEL_BOUNDARY``
        - per vertex a POINT on ``PARCEL_POINTS`` and its label (custom name
          or ``P{n}``) on ``PARCEL_TEXT``
        - per segment ``"{bearing} - {distance}m"`` at the edge midpoint on
          ``PARCEL_BEARINGS`` and the neighbor on ``PARCEL_NEIGHBORS``
        - title and area / perimeter summary under the drawing
    """
    config = config or ExportConfig()
    doc = ezdxf.new(config.dxf_version)
    doc.units = units.M
    for name, color in LAYERS.items():
        doc.layers.add(name, color=color)
    msp = doc.modelspace()

    segments = list(result.segments)
    vertices = polygon_vertices(segments, center=config.center_dxf)
    if not vertices:
        logger.warning("Parcel %s has no vertices, writing an empty drawing", result.id)
        return doc

    msp.add_lwpolyline(vertices, close=True, dxfattribs={"layer": LAYER_BOUNDARY})

    for i, ((x, y), (mx, my)) in enumerate(zip(vertices, segment_midpoints(vertices))):
        segment = segments[i]
        msp.add_point((x, y), dxfattribs={"layer": LAYER_POINTS})
        _add_text(msp, segment.custom_name or f"P{i + 1}",
                  x + LABEL_OFFSET, y + LABEL_OFFSET, LABEL_HEIGHT, LAYER_TEXT)
        _add_text(msp, f"{segment.bearing_raw} - {segment.distance_m:.2f}m",
                  mx, my + BEARING_OFFSET, BEARING_HEIGHT, LAYER_BEARINGS)
        if segment.neighbor:
            _add_text(msp, truncate(segment.neighbor, config.neighbor_max_chars),
                      mx, my + NEIGHBOR_OFFSET, NEIGHBOR_HEIGHT, LAYER_NEIGHBORS)

    xs = [x for x, _ in vertices]
    min_y = min(y for _, y in vertices)
    center_x = (min(xs) + max(xs)) / 2
    _add_text(msp, title, center_x, min_y + TITLE_OFFSET, TITLE_HEIGHT, LAYER_TEXT)
    _add_text(
        msp,
        f"Area: {result.area_computed:.2f} m2 | Perimetro: {result.perimeter_computed:.2f} m",
        center_x, min_y + SUMMARY_OFFSET, SUMMARY_HEIGHT, LAYER_TEXT,
    )
    return doc


def render_dxf(
    result: ParcelResult,
    title: str = "GeoMatrícula",
    config: ExportConfig | None = None,
) -> str:
    """Render ``result`` as ASCII DXF text."""
    doc = build_dxf_document(result, title, config)
    stream = io.StringIO()
    doc.write(stream)
    return stream.getvalue()
