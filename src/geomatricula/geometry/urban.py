"""Urban lot expansion into the same four-leg traverse used for rural deeds.

Urban deeds usually give front / back / side dimensions ("7,50 metros de
frente e de fundos, por 20,00 metros de cada lado") or a deflection walk
("12 metros, deflete à esquerda, 8,50 metros, ..."). Both are expanded here
into ordinary segments so nothing downstream distinguishes urban from rural.
"""

from __future__ import annotations

import logging
import re
from typing import Sequence

from pydantic import BaseModel

from geomatricula.geometry.bearing import format_azimuth, normalize_azimuth
from geomatricula.geometry.models import Segment
from geomatricula.geometry.traverse import reconstruct

logger = logging.getLogger(__name__)

FRONT_AZIMUTH = 90.0
RIGHT_SIDE_AZIMUTH = 0.0
BACK_AZIMUTH = 270.0
LEFT_SIDE_AZIMUTH = 180.0

DEFAULT_DEFLECTION_START = 90.0

_RIGHT_TURNS = {"direita", "right", "d", "r"}
_LEFT_TURNS = {"esquerda", "left", "e", "l"}

_DEFLECTION_TOKEN_RE = re.compile(
    r"(?P<distance>\d+(?:[.,]\d+)?)\s*(?:metros?|m)\b"
    r"|deflete\s+(?:para\s+(?:a\s+)?|à\s+|a\s+)?(?P<turn>direita|esquerda)",
    re.IGNORECASE,
)


class UrbanDimensions(BaseModel):
    """Front / back / side measurements of a rectangular urban lot."""

    front: float | None = None
    back: float | None = None
    right_side: float | None = None
    left_side: float | None = None
    front_confrontation: str = ""
    back_confrontation: str = ""
    right_confrontation: str = ""
    left_confrontation: str = ""

    @property
    def is_empty(self) -> bool:
        return not any((self.front, self.back, self.right_side, self.left_side))


def expand_urban_dimensions(dimensions: UrbanDimensions) -> list[Segment]:
    """Expand lot dimensions into four segments.

    Order is front (Az 90°), right side (Az 0°), back (Az 270°), left side
    (Az 180°). A missing back mirrors the front and a missing left side
    mirrors the right side.
    """
    front = dimensions.front or 0.0
    right_side = dimensions.right_side or 0.0
    back = dimensions.back if dimensions.back is not None else front
    left_side = dimensions.left_side if dimensions.left_side is not None else right_side

    legs = [
        (FRONT_AZIMUTH, front, dimensions.front_confrontation),
        (RIGHT_SIDE_AZIMUTH, right_side, dimensions.right_confrontation),
        (BACK_AZIMUTH, back, dimensions.back_confrontation),
        (LEFT_SIDE_AZIMUTH, left_side, dimensions.left_confrontation),
    ]
    segments = [
        Segment(
            index=i,
            bearing_raw=format_azimuth(azimuth),
            distance_m=max(0.0, distance),
            neighbor=neighbor,
        )
        for i, (azimuth, distance, neighbor) in enumerate(legs, start=1)
    ]
    return reconstruct(segments)


def _turn_delta(turn: str | None) -> float:
    key = (turn or "").strip().lower()
    if key in _RIGHT_TURNS:
        return 90.0
    if key in _LEFT_TURNS:
        return -90.0
    return 0.0


def expand_deflections(
    distances: Sequence[float],
    turns: Sequence[str | None],
    initial_azimuth: float = DEFAULT_DEFLECTION_START,
    neighbors: Sequence[str] | None = None,
) -> list[Segment]:
    """Convert a deflection walk into segments.

    ``turns[i]`` is the turn taken between leg ``i`` and leg ``i + 1``: a
    right turn adds 90°, a left turn subtracts 90°, anything else keeps the
    heading. Missing turns are treated as straight continuations.
    """
    neighbors = list(neighbors or [])
    azimuth = normalize_azimuth(initial_azimuth)
    segments: list[Segment] = []
    for i, distance in enumerate(distances):
        if i > 0:
            turn = turns[i - 1] if i - 1 < len(turns) else None
            azimuth = normalize_azimuth(azimuth + _turn_delta(turn))
        segments.append(Segment(
            index=i + 1,
            bearing_raw=format_azimuth(azimuth),
            distance_m=max(0.0, distance),
            neighbor=neighbors[i] if i < len(neighbors) else "",
        ))
    return reconstruct(segments)


def parse_deflection_text(text: str) -> tuple[list[float], list[str | None]]:
    """Tokenize deflection prose into distances and the turns between them."""
    distances: list[float] = []
    turns: list[str | None] = []
    pending_turn: str | None = None

    for match in _DEFLECTION_TOKEN_RE.finditer(text):
        if match.group("distance") is not None:
            if distances:
                turns.append(pending_turn)
            distances.append(float(match.group("distance").replace(",", ".")))
            pending_turn = None
        elif distances:
            pending_turn = match.group("turn").lower()

    if not distances:
        logger.warning("No distances found in deflection description")
    return distances, turns


def segments_from_deflection_text(
    text: str, initial_azimuth: float = DEFAULT_DEFLECTION_START
) -> list[Segment]:
    distances, turns = parse_deflection_text(text)
    return expand_deflections(distances, turns, initial_azimuth=initial_azimuth)
