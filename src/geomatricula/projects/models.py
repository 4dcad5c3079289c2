"""Project data models."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field

from geomatricula.core.types import ExtractionMethod
from geomatricula.extraction.normalize import ExtractedMatricula
from geomatricula.geodesy.utm import LatLng
from geomatricula.geometry.models import ParcelResult, Segment


class ProjectInfo(BaseModel):
    """Identification of a survey project, as printed on reports."""

    name: str
    matricula: str = ""
    owner: str = ""
    registry_office: str = ""
    property_address: str = ""
    city: str = ""
    state: str = ""
    technical_responsible: str = ""
    crea: str = ""
    observations: str = ""


class ProjectRecord(BaseModel):
    """A project and its current traverse snapshot."""

    project_id: str = Field(default_factory=lambda: f"proj-{uuid.uuid4().hex[:12]}")
    owner_id: str = "anonymous"
    info: ProjectInfo
    extracted: ExtractedMatricula | None = None
    extraction_method: ExtractionMethod = ExtractionMethod.AI
    result: ParcelResult | None = None
    anchor: LatLng | None = None
    history: list[dict[str, Any]] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def segments(self) -> list[Segment]:
        return list(self.result.segments) if self.result else []

    @property
    def area_declared(self) -> float | None:
        return self.extracted.area_declared if self.extracted else None

    def audit_context(self) -> dict[str, Any]:
        """Deed facts recorded alongside each revision audit event."""
        return {
            "matricula": self.info.matricula,
            "owner_name": self.info.owner,
            "city": self.info.city,
            "state": self.info.state,
        }
