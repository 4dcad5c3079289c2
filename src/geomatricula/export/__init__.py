"""Parcel exports: DXF, KML, GeoJSON and the PDF technical report."""

from geomatricula.export.dxf import render_dxf
from geomatricula.export.geojson import render_geojson
from geomatricula.export.kml import render_kml
from geomatricula.export.report import ReportRenderer

__all__ = ["ReportRenderer", "render_dxf", "render_geojson", "render_kml"]
