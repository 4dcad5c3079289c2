"""Core type definitions shared across all GeoMatrícula modules."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field


class ExtractionMethod(StrEnum):
    """Provenance of a parcel's segment data."""

    REGEX = "regex"
    AI = "ai"
    HYBRID = "hybrid"


class PropertyType(StrEnum):
    """Deed category as reported by the extraction oracle."""

    RURAL = "rural"
    URBAN = "urbano"


class Hemisphere(StrEnum):
    NORTH = "N"
    SOUTH = "S"


class QualityLevel(StrEnum):
    """UI banding for a computed parcel."""

    GREEN = "green"
    YELLOW = "yellow"
    RED = "red"


class WarningType(StrEnum):
    CLOSURE = "closure"
    AREA_MISMATCH = "area_mismatch"
    MISSING_SEGMENT = "missing_segment"


class Severity(StrEnum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class RevisionState(StrEnum):
    """States of a chat-driven segment revision."""

    PROPOSED = "proposed"
    SAFE = "safe"
    PENDING_CONFIRMATION = "pending_confirmation"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"
    SUPERSEDED = "superseded"


class AuditAction(StrEnum):
    """Action types recorded in the segment audit log."""

    AI_CORRECTION = "ai_correction"
    MANUAL_CONFIRMED = "manual_confirmed"
    CANCELLED = "cancelled"


class AuditEvent(BaseModel):
    """Immutable audit log entry for a segment revision."""

    event_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    project_id: str
    actor: str
    action: AuditAction
    change_description: str = ""
    warning_message: str | None = None
    risk_acknowledged: bool = False
    user_message: str | None = None
    ai_response: str | None = None
    segments_before: list[dict[str, Any]] = Field(default_factory=list)
    segments_after: list[dict[str, Any]] = Field(default_factory=list)
    details: dict[str, Any] = Field(default_factory=dict)
