"""Bearing parser: heterogeneous deed notations to decimal-degree azimuths.

Dialects are tried in a fixed precedence and the first match wins:

1. Quadrant bearings (``N 45°30'E``, ``S 12°30'15" W``). Portuguese
   ``L`` (leste) and ``O`` (oeste) are accepted for east and west.
2. Explicit azimuths (``Az 125°45'30"``, ``Az. 90``, ``azimute 112°30'``).
3. Bare degree-prefixed values without quadrant letters (``123°45'30"``).
4. The first number anywhere in the string, read as degrees.

Parsing is total. Input nothing matches yields ``0.0`` so a traverse always
stays numerically defined; judging the result is left to the quality
classifier.
"""

from __future__ import annotations

import logging
import re

logger = logging.getLogger(__name__)

_NUM = r"(\d+(?:[.,]\d+)?)"
_DEG_MARK = r"[°º˚]?"
_MIN_MARK = r"['′’]?"
_SEC_MARK = r"(?:''|[\"″”])?"
_DMS = rf"{_NUM}\s*{_DEG_MARK}\s*(?:{_NUM}\s*{_MIN_MARK}\s*)?(?:{_NUM}\s*{_SEC_MARK}\s*)?"

_QUADRANT_RE = re.compile(rf"(?<![A-Za-z])([NS])\s*{_DMS}([EWLO])", re.IGNORECASE)
_AZIMUTH_RE = re.compile(rf"\bAz(?:imute|imuth)?\.?\s*:?\s*{_DMS}", re.IGNORECASE)
_BARE_DEGREES_RE = re.compile(
    rf"^\s*{_NUM}\s*[°º˚]\s*(?:{_NUM}\s*{_MIN_MARK}\s*)?(?:{_NUM}\s*{_SEC_MARK}\s*)?$"
)
_ANY_NUMBER_RE = re.compile(_NUM)

_EAST = {"E", "L"}


def _to_float(text: str | None) -> float:
    if not text:
        return 0.0
    return float(text.replace(",", "."))


def dms_to_decimal(degrees: float, minutes: float = 0.0, seconds: float = 0.0) -> float:
    """Combine degrees, minutes and seconds into decimal degrees."""
    return degrees + minutes / 60.0 + seconds / 3600.0


def normalize_azimuth(value: float) -> float:
    """Wrap an angle into ``[0, 360)``."""
    wrapped = value % 360.0
    # 360 - tiny can round back up to 360.0
    return 0.0 if wrapped >= 360.0 else wrapped


def quadrant_to_azimuth(ns: str, angle: float, ew: str) -> float:
    """Convert a quadrant bearing (``N``/``S``, angle, ``E``/``W``) to an azimuth."""
    north = ns.upper() == "N"
    east = ew.upper() in _EAST
    if north and east:
        azimuth = angle
    elif north:
        azimuth = 360.0 - angle
    elif east:
        azimuth = 180.0 - angle
    else:
        azimuth = 180.0 + angle
    return normalize_azimuth(azimuth)


def parse_quadrant_bearing(raw: str) -> float | None:
    """Parse a quadrant bearing, or return None when the text is not one."""
    match = _QUADRANT_RE.search(raw)
    if match is None:
        return None
    ns, deg, minutes, seconds, ew = match.groups()
    angle = dms_to_decimal(_to_float(deg), _to_float(minutes), _to_float(seconds))
    return quadrant_to_azimuth(ns, angle, ew)


def parse_explicit_azimuth(raw: str) -> float | None:
    """Parse an ``Az``-prefixed azimuth, or return None."""
    match = _AZIMUTH_RE.search(raw)
    if match is None:
        return None
    deg, minutes, seconds = match.groups()
    return normalize_azimuth(dms_to_decimal(_to_float(deg), _to_float(minutes), _to_float(seconds)))


def parse_bare_degrees(raw: str) -> float | None:
    """Parse a bare ``123°45'30"`` value, or return None."""
    match = _BARE_DEGREES_RE.match(raw)
    if match is None:
        return None
    deg, minutes, seconds = match.groups()
    return normalize_azimuth(dms_to_decimal(_to_float(deg), _to_float(minutes), _to_float(seconds)))


def parse_bearing_to_azimuth(raw: str | None) -> float:
    """Parse any supported bearing notation into an azimuth in ``[0, 360)``.

    Never raises. Unparseable or empty input returns ``0.0``.
    """
    if not raw or not raw.strip():
        return 0.0

    for parser in (parse_quadrant_bearing, parse_explicit_azimuth, parse_bare_degrees):
        value = parser(raw)
        if value is not None:
            return value

    match = _ANY_NUMBER_RE.search(raw)
    if match:
        logger.debug("Bearing %r parsed by numeric fallback", raw)
        return normalize_azimuth(_to_float(match.group(1)))

    logger.warning("Unparseable bearing %r, falling back to azimuth 0", raw)
    return 0.0


def format_azimuth(azimuth: float) -> str:
    """Render an azimuth in the normalized ``Az DDD°MM'SS"`` notation."""
    total_seconds = round(normalize_azimuth(azimuth) * 3600)
    total_seconds %= 360 * 3600
    degrees, remainder = divmod(total_seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    return f"Az {degrees}°{minutes:02d}'{seconds:02d}\""
