"""KML 2.2 export of an anchored parcel for Google Earth."""

from __future__ import annotations

from typing import Sequence
from xml.sax.saxutils import escape

from geomatricula.core.config import ExportConfig
from geomatricula.geodesy.utm import LatLng, local_to_latlng
from geomatricula.geometry.models import ParcelResult, Segment
from geomatricula.geometry.traverse import build_vertices

POLYGON_LINE_COLOR = "ff00b4a6"
POLYGON_FILL_COLOR = "4000b4a6"
VERTEX_ICON_COLOR = "ff1a365d"
VERTEX_ICON = "http://maps.google.com/mapfiles/kml/shapes/placemark_circle.png"


def truncate(text: str, max_chars: int) -> str:
    if len(text) <= max_chars:
        return text
    return text[: max(0, max_chars - 3)].rstrip() + "..."


def _cdata(text: str) -> str:
    return "<![CDATA[" + text.replace("]]>", "]]]]><![CDATA[>") + "]]>"


def _coordinate(point: LatLng) -> str:
    # KML order is longitude first
    return f"{point.lng},{point.lat},0"


def closed_ring(points: Sequence[LatLng]) -> list[LatLng]:
    ring = list(points)
    if ring and (ring[0].lat, ring[0].lng) != (ring[-1].lat, ring[-1].lng):
        ring.append(ring[0])
    return ring


def geographic_vertices(result: ParcelResult, anchor: LatLng | None = None) -> list[LatLng]:
    """Polygon corners (traverse endpoint excluded) placed around ``anchor``."""
    return local_to_latlng(build_vertices(result.segments)[:-1], center=anchor)


def _vertex_placemark(index: int, point: LatLng, segment: Segment | None, max_chars: int) -> str:
    label = truncate(segment.neighbor, max_chars) if segment and segment.neighbor else f"Ponto {index}"
    detail = (
        f"Rumo: {segment.bearing_raw}\nDistância: {segment.distance_m:.2f}m" if segment else ""
    )
    description = _cdata(f"{escape(label)}<br/>{escape(detail)}")
    return f"""
      <Placemark>
        <name>P{index}</name>
        <description>{description}</description>
        <styleUrl>#vertexStyle</styleUrl>
        <Point>
          <coordinates>{_coordinate(point)}</coordinates>
        </Point>
      </Placemark>"""


def render_kml(
    result: ParcelResult,
    title: str = "GeoMatrícula",
    anchor: LatLng | None = None,
    config: ExportConfig | None = None,
) -> str:
    """Render ``result`` as a KML 2.2 document.

    One styled Polygon placemark with an explicitly closed ring, plus a
    ``Vértices`` folder holding one Point placemark per corner.
    """
    config = config or ExportConfig()
    corners = geographic_vertices(result, anchor)
    ring = " ".join(_coordinate(p) for p in closed_ring(corners))
    segments = list(result.segments)
    placemarks = "".join(
        _vertex_placemark(i + 1, point, segments[i] if i < len(segments) else None,
                          config.neighbor_max_chars)
        for i, point in enumerate(corners)
    )
    name = escape(title)
    area = f"{result.area_computed:.2f}"
    perimeter = f"{result.perimeter_computed:.2f}"
    summary = _cdata(
        f"<b>Área:</b> {area} m²<br/><b>Perímetro:</b> {perimeter} m<br/>"
        f"<b>Vértices:</b> {len(segments)}"
    )

    return f"""<?xml version="1.0" encoding="UTF-8"?>
<kml xmlns="http://www.opengis.net/kml/2.2">
  <Document>
    <name>{name}</name>
    <description>
      Área: {area} m²
      Perímetro: {perimeter} m
      Gerado por GeoMatrícula
    </description>
    <Style id="polygonStyle">
      <LineStyle>
        <color>{POLYGON_LINE_COLOR}</color>
        <width>3</width>
      </LineStyle>
      <PolyStyle>
        <color>{POLYGON_FILL_COLOR}</color>
      </PolyStyle>
    </Style>
    <Style id="vertexStyle">
      <IconStyle>
        <color>{VERTEX_ICON_COLOR}</color>
        <scale>0.8</scale>
        <Icon>
          <href>{VERTEX_ICON}</href>
        </Icon>
      </IconStyle>
      <LabelStyle>
        <scale>0.8</scale>
      </LabelStyle>
    </Style>
    <Placemark>
      <name>{name}</name>
      <description>{summary}</description>
      <styleUrl>#polygonStyle</styleUrl>
      <Polygon>
        <outerBoundaryIs>
          <LinearRing>
            <coordinates>{ring}</coordinates>
          </LinearRing>
        </outerBoundaryIs>
      </Polygon>
    </Placemark>
    <Folder>
      <name>Vértices</name>{placemarks}
    </Folder>
  </Document>
</kml>
"""
