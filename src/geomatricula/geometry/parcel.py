"""Parcel pipeline: segments to an immutable :class:`ParcelResult` snapshot."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Sequence

from geomatricula.core.types import ExtractionMethod
from geomatricula.geometry.metrics import compute_metrics
from geomatricula.geometry.models import ParcelResult, Segment
from geomatricula.geometry.quality import classify
from geomatricula.geometry.traverse import Vertex, build_vertices, reconstruct
from geomatricula.geometry.urban import UrbanDimensions, expand_urban_dimensions

logger = logging.getLogger(__name__)


def local_geojson(vertices: Sequence[Vertex], properties: dict[str, Any] | None = None) -> dict[str, Any]:
    """GeoJSON Feature of the traverse in local planar meters.

    The ring is closed explicitly by repeating the first vertex, as GeoJSON
    requires. The traverse's own endpoint is kept as a separate vertex so a
    closure gap stays visible.
    """
    ring = [[x, y] for x, y in vertices]
    if ring and ring[0] != ring[-1]:
        ring.append(list(ring[0]))
    return {
        "type": "Feature",
        "geometry": {"type": "Polygon", "coordinates": [ring]},
        "properties": dict(properties or {}),
    }


def build_parcel_result(
    segments: Iterable[Segment],
    area_declared: float | None = None,
    extraction_method: ExtractionMethod = ExtractionMethod.AI,
    project_id: str | None = None,
) -> ParcelResult:
    """Run reconstruct, metrics and classification over a traverse.

    Derived fields on the incoming segments are ignored and recomputed.

    Args:
        segments: The traverse legs in any order; they are sorted by index.
        area_declared: Area stated on the deed, in square meters.
        extraction_method: Provenance of the segment data.
        project_id: Owning project, if any.

    Returns:
        A frozen ParcelResult snapshot.
    """
    reconstructed = reconstruct(segments)
    metrics = compute_metrics(reconstructed)
    assessment = classify(metrics.closure_error, area_declared, metrics.area, len(reconstructed))

    geojson = local_geojson(
        build_vertices(reconstructed),
        {
            "area": metrics.area,
            "perimeter": metrics.perimeter,
            "closure_error": metrics.closure_error,
        },
    )

    result = ParcelResult(
        project_id=project_id,
        segments=tuple(reconstructed),
        area_declared=area_declared,
        area_computed=metrics.area,
        perimeter_computed=metrics.perimeter,
        closure_error=metrics.closure_error,
        confidence_score=assessment.confidence_score,
        warnings=tuple(assessment.warnings),
        quality=assessment.indicator,
        extraction_method=extraction_method,
        geojson=geojson,
    )
    logger.info(
        "Parcel computed: %d segments, area=%.2f m2, closure=%.3f m, confidence=%d (%s)",
        len(reconstructed), metrics.area, metrics.closure_error,
        assessment.confidence_score, assessment.indicator.level,
    )
    return result


def resolve_segments(
    segments: Sequence[Segment],
    urban_dimensions: UrbanDimensions | None = None,
) -> list[Segment]:
    """Pick the traverse to compute.

    Explicit segments win. Urban dimensions are expanded only when the deed
    yielded no segments at all.
    """
    if segments:
        return list(segments)
    if urban_dimensions is not None and not urban_dimensions.is_empty:
        logger.info("No survey segments, expanding urban lot dimensions")
        return expand_urban_dimensions(urban_dimensions)
    return []


def parcel_from_extraction(
    extracted: Any,
    extraction_method: ExtractionMethod = ExtractionMethod.AI,
    project_id: str | None = None,
) -> ParcelResult:
    """Build a ParcelResult from an :class:`ExtractedMatricula`."""
    segments = resolve_segments(extracted.segments, extracted.urban_dimensions)
    return build_parcel_result(
        segments,
        area_declared=extracted.area_declared,
        extraction_method=extraction_method,
        project_id=project_id,
    )
