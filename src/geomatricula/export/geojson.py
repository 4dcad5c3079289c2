"""GeoJSON export of a parcel placed on the map."""

from __future__ import annotations

import json
from typing import Any

from geomatricula.export.kml import closed_ring, geographic_vertices
from geomatricula.geodesy.utm import LatLng
from geomatricula.geometry.models import ParcelResult


def parcel_properties(result: ParcelResult) -> dict[str, Any]:
    return {
        "result_id": result.id,
        "project_id": result.project_id,
        "area": round(result.area_computed, 2),
        "perimeter": round(result.perimeter_computed, 2),
        "closure_error": round(result.closure_error, 3),
        "confidence_score": result.confidence_score,
        "quality": str(result.quality.level),
        "warnings": [w.message for w in result.warnings],
    }


def geographic_feature(result: ParcelResult, anchor: LatLng | None = None) -> dict[str, Any]:
    """WGS84 Feature with a closed ``[lng, lat]`` ring."""
    ring = [[p.lng, p.lat] for p in closed_ring(geographic_vertices(result, anchor))]
    return {
        "type": "Feature",
        "geometry": {"type": "Polygon", "coordinates": [ring]},
        "properties": parcel_properties(result),
    }


def render_geojson(result: ParcelResult, anchor: LatLng | None = None) -> str:
    collection = {"type": "FeatureCollection", "features": [geographic_feature(result, anchor)]}
    return json.dumps(collection, ensure_ascii=False, indent=2)
