"""Geometry data models: segments, parcel snapshots and quality indicators."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field

from geomatricula.core.types import ExtractionMethod, QualityLevel, Severity, WarningType


class Segment(BaseModel):
    """One leg of a property traverse.

    ``bearing_azimuth``, ``delta_x`` and ``delta_y`` are derived fields. They
    are filled in by :func:`geomatricula.geometry.traverse.reconstruct_segment`
    and are never trusted when supplied from outside.
    """

    index: int
    bearing_raw: str = ""
    distance_m: float = Field(default=0.0, ge=0.0)
    neighbor: str = ""
    source_text: str = ""
    confidence: float = 0.9
    custom_name: str | None = None

    bearing_azimuth: float = 0.0
    delta_x: float = 0.0
    delta_y: float = 0.0


class ParcelWarning(BaseModel):
    """A human-readable data quality warning attached to a parcel."""

    type: WarningType
    message: str
    severity: Severity


class QualityIndicator(BaseModel):
    """Tiered quality band derived from a parcel's metrics."""

    level: QualityLevel
    closure_error: float
    confidence_score: int
    area_difference: float | None = None
    message: str


class PolygonMetrics(BaseModel):
    """Area, perimeter and closure error of one traverse."""

    area: float
    perimeter: float
    closure_error: float
    closure_dx: float = 0.0
    closure_dy: float = 0.0


class ParcelResult(BaseModel):
    """Computed snapshot derived from a traverse.

    Frozen: a revision produces a new snapshot instead of mutating this one.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: f"result-{uuid.uuid4()}")
    project_id: str | None = None
    segments: tuple[Segment, ...]
    area_declared: float | None = None
    area_computed: float
    perimeter_computed: float
    closure_error: float
    confidence_score: int
    warnings: tuple[ParcelWarning, ...] = ()
    quality: QualityIndicator
    extraction_method: ExtractionMethod = ExtractionMethod.AI
    geojson: dict | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def vertices(self) -> list[tuple[float, float]]:
        """Local plane vertices, origin first, ``len(segments) + 1`` entries."""
        from geomatricula.geometry.traverse import build_vertices

        return build_vertices(self.segments)
