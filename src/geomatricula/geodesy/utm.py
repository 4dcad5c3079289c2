"""UTM to WGS84 conversion and anchoring of the local traverse plane.

Uses the transverse-Mercator inverse series (USGS formulation) on the WGS84
ellipsoid. The "safe" entry points gate both the input and the result to
ranges plausible for Brazil and return None instead of a wrong answer.
"""

from __future__ import annotations

import functools
import logging
import math
from pathlib import Path
from typing import Any, Sequence

import yaml
from pydantic import BaseModel, Field

from geomatricula.core.config import GeodesyConfig
from geomatricula.core.types import Hemisphere

logger = logging.getLogger(__name__)

_ZONE_TABLE_PATH = Path(__file__).resolve().parent / "data" / "utm_zones.yml"

# WGS84
SEMI_MAJOR_AXIS = 6378137.0
ECCENTRICITY = 0.081819191
SECOND_ECCENTRICITY_SQ = 0.006739497
SCALE_FACTOR = 0.9996

FALSE_EASTING = 500_000.0
FALSE_NORTHING_SOUTH = 10_000_000.0

EASTING_RANGE = (100_000.0, 900_000.0)
NORTHING_RANGE = (1_000_000.0, 10_000_000.0)
LAT_RANGE = (-35.0, 6.0)
LNG_RANGE = (-75.0, -28.0)


class LatLng(BaseModel):
    lat: float
    lng: float


class FirstVertex(BaseModel):
    """UTM northing / easting of the traverse origin as written on the deed."""

    n: float
    e: float


class UtmCoordinates(BaseModel):
    """Optional georeference printed on a deed."""

    zone: int | None = Field(default=None, ge=1, le=60)
    hemisphere: Hemisphere | None = None
    first_vertex: FirstVertex | None = None


def utm_to_latlng(
    easting: float,
    northing: float,
    zone: int,
    hemisphere: Hemisphere | str = Hemisphere.SOUTH,
) -> LatLng:
    """Convert a UTM coordinate to WGS84 latitude / longitude in degrees.

    No range checking is done here; see :func:`utm_to_latlng_safe`.
    """
    e = ECCENTRICITY
    e2 = e ** 2
    ep2 = SECOND_ECCENTRICITY_SQ
    a = SEMI_MAJOR_AXIS
    k0 = SCALE_FACTOR

    x = easting - FALSE_EASTING
    y = northing - FALSE_NORTHING_SOUTH if str(hemisphere).upper() == "S" else northing
    lon_origin = (zone - 1) * 6 - 180 + 3

    # footprint latitude
    m = y / k0
    mu = m / (a * (1 - e2 / 4 - 3 * e ** 4 / 64 - 5 * e ** 6 / 256))
    e1 = (1 - math.sqrt(1 - e2)) / (1 + math.sqrt(1 - e2))
    phi1 = (
        mu
        + (3 * e1 / 2 - 27 * e1 ** 3 / 32) * math.sin(2 * mu)
        + (21 * e1 ** 2 / 16 - 55 * e1 ** 4 / 32) * math.sin(4 * mu)
        + (151 * e1 ** 3 / 96) * math.sin(6 * mu)
    )

    sin_phi1 = math.sin(phi1)
    cos_phi1 = math.cos(phi1)
    tan_phi1 = math.tan(phi1)
    n1 = a / math.sqrt(1 - e2 * sin_phi1 ** 2)
    t1 = tan_phi1 ** 2
    c1 = ep2 * cos_phi1 ** 2
    r1 = a * (1 - e2) / (1 - e2 * sin_phi1 ** 2) ** 1.5
    d = x / (n1 * k0)

    lat = phi1 - (n1 * tan_phi1 / r1) * (
        d ** 2 / 2
        - (5 + 3 * t1 + 10 * c1 - 4 * c1 ** 2 - 9 * ep2) * d ** 4 / 24
        + (61 + 90 * t1 + 298 * c1 + 45 * t1 ** 2 - 252 * ep2 - 3 * c1 ** 2) * d ** 6 / 720
    )
    lng = (
        d
        - (1 + 2 * t1 + c1) * d ** 3 / 6
        + (5 - 2 * c1 + 28 * t1 - 3 * c1 ** 2 + 8 * ep2 + 24 * t1 ** 2) * d ** 5 / 120
    ) / cos_phi1

    return LatLng(lat=math.degrees(lat), lng=lon_origin + math.degrees(lng))


def _within(value: float, bounds: tuple[float, float]) -> bool:
    return bounds[0] <= value <= bounds[1]


def utm_to_latlng_safe(
    easting: float,
    northing: float,
    zone: int,
    hemisphere: Hemisphere | str = Hemisphere.SOUTH,
) -> LatLng | None:
    """Gated conversion: None when input or output falls outside Brazil."""
    if not _within(easting, EASTING_RANGE) or not _within(northing, NORTHING_RANGE):
        logger.warning("UTM input out of range: e=%s n=%s", easting, northing)
        return None

    result = utm_to_latlng(easting, northing, zone, hemisphere)
    if not _within(result.lat, LAT_RANGE) or not _within(result.lng, LNG_RANGE):
        logger.warning("UTM result outside Brazil bounds: %s", result)
        return None
    return result


@functools.lru_cache(maxsize=None)
def _load_zone_table(path: str) -> dict[str, Any]:
    with open(path) as fh:
        return yaml.safe_load(fh) or {}


def zone_table(path: str | Path | None = None) -> dict[str, int]:
    """State (UF) to UTM zone mapping loaded from YAML."""
    config = _load_zone_table(str(path or _ZONE_TABLE_PATH))
    return {str(k).upper(): int(v) for k, v in config.get("states", {}).items()}


def utm_zone_from_state(state: str | None, default: int = 23) -> int:
    """Infer the UTM zone from a Brazilian state code, ``default`` if unknown."""
    if not state:
        return default
    return zone_table().get(state.strip().upper(), default)


def utm_zone_from_lng(lng: float) -> int:
    return math.floor((lng + 180) / 6) + 1


def convert_utm_anchor(
    coordinates: UtmCoordinates | None,
    fallback_state: str | None = None,
    config: GeodesyConfig | None = None,
) -> LatLng | None:
    """Anchor the traverse origin using the deed's UTM first vertex.

    The zone comes from the deed, else the state table, else the configured
    default. The hemisphere defaults to south.

    Returns:
        The WGS84 position of local (0, 0), or None when the deed carries no
        usable anchor.
    """
    config = config or GeodesyConfig()
    if coordinates is None or coordinates.first_vertex is None:
        logger.debug("No UTM first vertex to anchor on")
        return None

    zone = coordinates.zone or utm_zone_from_state(fallback_state, default=config.default_zone)
    hemisphere = coordinates.hemisphere or config.default_hemisphere
    vertex = coordinates.first_vertex
    return utm_to_latlng_safe(vertex.e, vertex.n, zone, hemisphere)


def default_center(config: GeodesyConfig | None = None) -> LatLng:
    config = config or GeodesyConfig()
    return LatLng(lat=config.default_center_lat, lng=config.default_center_lng)


def local_to_latlng(
    vertices: Sequence[tuple[float, float]],
    center: LatLng | None = None,
    degrees_per_meter: float | None = None,
) -> list[LatLng]:
    """Place local planar vertices around ``center`` for map display.

    A flat small-offset approximation (about 1e-5 degrees per meter on both
    axes), adequate for on-screen placement but not for surveying.
    """
    config = GeodesyConfig()
    center = center or default_center(config)
    scale = degrees_per_meter if degrees_per_meter is not None else config.degrees_per_meter
    return [LatLng(lat=center.lat + y * scale, lng=center.lng + x * scale) for x, y in vertices]
