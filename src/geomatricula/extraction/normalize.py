"""Coercion of loosely shaped oracle output into strict internal models.

LLM oracles answer in whatever casing and language the prompt nudged them
toward (``bearingRaw`` or ``rumo``, ``distanceM`` or ``distancia``, numbers
as ``"45,50m"``). Everything here is total: unknown fields are dropped,
unreadable values fall back to empty defaults, and derived geometry fields
supplied by the oracle are never copied.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Iterable, Mapping

from pydantic import BaseModel, Field

from geomatricula.core.types import Hemisphere, PropertyType
from geomatricula.geodesy.utm import FirstVertex, UtmCoordinates
from geomatricula.geometry.models import Segment
from geomatricula.geometry.urban import UrbanDimensions

logger = logging.getLogger(__name__)

_FENCED_JSON_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)```", re.IGNORECASE)
_NUMERIC_CHARS_RE = re.compile(r"[^\d.,\-]")
_DIGITS_RE = re.compile(r"\d+")
# a single dot followed by exactly three digits, as in "1.500" (one thousand five hundred)
_THOUSANDS_DOT_RE = re.compile(r"-?[1-9]\d{0,2}\.\d{3}")

BEARING_KEYS = ("bearing_raw", "bearingRaw", "rumo", "bearing", "azimute")
DISTANCE_KEYS = ("distance_m", "distanceM", "distancia", "distância", "distance")
NEIGHBOR_KEYS = ("neighbor", "confrontation", "confrontante")


class ExtractedMatricula(BaseModel):
    """Structured content of a deed as returned by the extraction oracle."""

    matricula: str = ""
    owner: str = ""
    registry_office: str = ""
    city: str = ""
    state: str = ""
    property_address: str = ""
    neighborhood: str = ""
    road: str = ""
    property_type: PropertyType | None = None
    area_declared: float | None = None
    perimeter_declared: float | None = None
    utm_coordinates: UtmCoordinates | None = None
    segments: list[Segment] = Field(default_factory=list)
    urban_dimensions: UrbanDimensions | None = None


def _first(raw: Mapping[str, Any], keys: Iterable[str]) -> Any:
    for key in keys:
        value = raw.get(key)
        if value is not None and value != "":
            return value
    return None


def parse_decimal(value: Any) -> float | None:
    """Read a number written either as a JSON number or as Brazilian text.

    ``"45,50m"`` -> 45.5, ``"12.487,35 m²"`` -> 12487.35, ``"1,234.5"`` ->
    1234.5. Deeds group thousands with dots, so a lone dot before exactly
    three digits is a grouping mark: ``"1.500"`` -> 1500.0. Any other
    single dot stays decimal (``"120.00"``, ``"0.875"``, ``"7382536.544"``).
    Returns None when no number can be read.
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)

    text = _NUMERIC_CHARS_RE.sub("", str(value))
    if not text or not any(ch.isdigit() for ch in text):
        return None

    if "," in text and "." in text:
        # whichever separator comes last is the decimal mark
        if text.rfind(",") > text.rfind("."):
            text = text.replace(".", "").replace(",", ".")
        else:
            text = text.replace(",", "")
    elif "," in text:
        text = text.replace(",", ".") if text.count(",") == 1 else text.replace(",", "")
    elif text.count(".") > 1 or _THOUSANDS_DOT_RE.fullmatch(text):
        text = text.replace(".", "")

    try:
        return float(text)
    except ValueError:
        logger.debug("Could not read number from %r", value)
        return None


def _coerce_index(raw: Mapping[str, Any], position: int) -> int:
    index = raw.get("index")
    if isinstance(index, int) and not isinstance(index, bool):
        return index
    if isinstance(index, str) and index.strip().isdigit():
        return int(index)

    point = raw.get("point")
    if point is not None:
        digits = _DIGITS_RE.search(str(point))
        if digits:
            return int(digits.group())
    return position


def _text(value: Any) -> str:
    return "" if value is None else str(value).strip()


def coerce_segment(raw: Mapping[str, Any], position: int) -> Segment:
    """Build a strict Segment from one oracle segment object.

    Args:
        raw: The oracle's segment mapping, in any supported key dialect.
        position: 1-based position in the incoming array, used when the
            oracle supplies neither ``index`` nor ``point``.
    """
    distance = parse_decimal(_first(raw, DISTANCE_KEYS))
    confidence = parse_decimal(raw.get("confidence"))
    custom_name = _text(raw.get("custom_name") or raw.get("customName")) or None

    return Segment(
        index=_coerce_index(raw, position),
        bearing_raw=_text(_first(raw, BEARING_KEYS)),
        distance_m=max(0.0, distance or 0.0),
        neighbor=_text(_first(raw, NEIGHBOR_KEYS)),
        source_text=_text(raw.get("source_text") or raw.get("sourceText")),
        confidence=min(1.0, max(0.0, confidence)) if confidence is not None else 0.9,
        custom_name=custom_name,
    )


def coerce_segments(raw_segments: Any) -> list[Segment]:
    """Coerce a list of oracle segments, skipping entries that are not objects."""
    if not isinstance(raw_segments, list):
        return []
    segments = []
    for position, raw in enumerate(raw_segments, start=1):
        if not isinstance(raw, Mapping):
            logger.warning("Skipping non-object segment at position %d", position)
            continue
        segments.append(coerce_segment(raw, position))
    return segments


def coerce_utm(raw: Any) -> UtmCoordinates | None:
    if not isinstance(raw, Mapping):
        return None

    zone = None
    zone_raw = raw.get("zone")
    if zone_raw is not None:
        digits = _DIGITS_RE.search(str(zone_raw))
        if digits and 1 <= int(digits.group()) <= 60:
            zone = int(digits.group())

    hemisphere_raw = _text(raw.get("hemisphere")).upper()
    hemisphere = Hemisphere(hemisphere_raw) if hemisphere_raw in ("N", "S") else None

    first_vertex = None
    vertex_raw = raw.get("first_vertex") or raw.get("firstVertex")
    if isinstance(vertex_raw, Mapping):
        n = parse_decimal(vertex_raw.get("n") if vertex_raw.get("n") is not None else vertex_raw.get("N"))
        e = parse_decimal(vertex_raw.get("e") if vertex_raw.get("e") is not None else vertex_raw.get("E"))
        if n is not None and e is not None:
            first_vertex = FirstVertex(n=n, e=e)

    return UtmCoordinates(zone=zone, hemisphere=hemisphere, first_vertex=first_vertex)


def coerce_urban_dimensions(raw: Any) -> UrbanDimensions | None:
    if not isinstance(raw, Mapping):
        return None

    def side(*keys: str) -> float | None:
        value = parse_decimal(_first(raw, keys))
        return None if value is None else max(0.0, value)

    return UrbanDimensions(
        front=side("front", "frente"),
        back=side("back", "fundos"),
        right_side=side("right_side", "rightSide"),
        left_side=side("left_side", "leftSide"),
        front_confrontation=_text(_first(raw, ("front_confrontation", "frontConfrontation"))),
        back_confrontation=_text(_first(raw, ("back_confrontation", "backConfrontation"))),
        right_confrontation=_text(_first(raw, ("right_confrontation", "rightConfrontation"))),
        left_confrontation=_text(_first(raw, ("left_confrontation", "leftConfrontation"))),
    )


def _coerce_property_type(value: Any) -> PropertyType | None:
    text = _text(value).lower()
    if text == "rural":
        return PropertyType.RURAL
    if text in ("urbano", "urbana", "urban"):
        return PropertyType.URBAN
    return None


def coerce_extraction(payload: Mapping[str, Any]) -> ExtractedMatricula:
    """Build an :class:`ExtractedMatricula` from an extraction oracle payload."""
    area = parse_decimal(_first(payload, ("area_declared", "areaDeclared", "area")))
    perimeter = parse_decimal(_first(payload, ("perimeter_declared", "perimeterDeclared")))

    return ExtractedMatricula(
        matricula=_text(payload.get("matricula")),
        owner=_text(_first(payload, ("owner", "proprietario"))),
        registry_office=_text(_first(payload, ("registry_office", "registryOffice", "cartorio"))),
        city=_text(payload.get("city")),
        state=_text(payload.get("state")).upper(),
        property_address=_text(_first(payload, ("property_address", "propertyAddress", "address"))),
        neighborhood=_text(payload.get("neighborhood")),
        road=_text(payload.get("road")),
        property_type=_coerce_property_type(_first(payload, ("property_type", "propertyType"))),
        area_declared=area if area is not None and area > 0 else None,
        perimeter_declared=perimeter if perimeter is not None and perimeter > 0 else None,
        utm_coordinates=coerce_utm(_first(payload, ("utm_coordinates", "utmCoordinates"))),
        segments=coerce_segments(payload.get("segments")),
        urban_dimensions=coerce_urban_dimensions(
            _first(payload, ("urban_dimensions", "urbanDimensions"))
        ),
    )


def parse_oracle_json(content: str | None) -> dict[str, Any] | None:
    """Pull a JSON object out of an LLM reply.

    Accepts a fenced ```json block anywhere in the reply, or a reply that is
    itself a JSON object. Returns None for prose or malformed JSON.
    """
    if not content:
        return None

    match = _FENCED_JSON_RE.search(content)
    if match:
        candidate = match.group(1).strip()
    elif content.strip().startswith("{"):
        candidate = content.strip()
    else:
        return None

    try:
        data = json.loads(candidate)
    except json.JSONDecodeError:
        logger.debug("Oracle reply is not valid JSON")
        return None
    return data if isinstance(data, dict) else None
