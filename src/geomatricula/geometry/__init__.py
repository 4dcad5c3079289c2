"""Survey geometry: bearings, traverse reconstruction, metrics and quality.

Every function in this package is pure and synchronous.
"""

from geomatricula.geometry.bearing import format_azimuth, parse_bearing_to_azimuth
from geomatricula.geometry.metrics import compute_metrics
from geomatricula.geometry.models import ParcelResult, ParcelWarning, QualityIndicator, Segment
from geomatricula.geometry.parcel import build_parcel_result, parcel_from_extraction
from geomatricula.geometry.quality import classify
from geomatricula.geometry.traverse import build_vertices, reconstruct
from geomatricula.geometry.urban import UrbanDimensions, expand_deflections, expand_urban_dimensions

__all__ = [
    "ParcelResult",
    "ParcelWarning",
    "QualityIndicator",
    "Segment",
    "UrbanDimensions",
    "build_parcel_result",
    "build_vertices",
    "classify",
    "compute_metrics",
    "expand_deflections",
    "expand_urban_dimensions",
    "format_azimuth",
    "parcel_from_extraction",
    "parse_bearing_to_azimuth",
    "reconstruct",
]
