"""Quality and confidence classification of a reconstructed parcel.

Deductions stack as thresholds are crossed, and the score never drops below
:data:`CONFIDENCE_FLOOR`. The tier is evaluated most-severe first.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from geomatricula.core.types import QualityLevel, Severity, WarningType
from geomatricula.geometry.models import ParcelWarning, QualityIndicator

BASE_CONFIDENCE = 95
CONFIDENCE_FLOOR = 50
MIN_POLYGON_SEGMENTS = 3

# (threshold in meters, deduction)
CLOSURE_DEDUCTIONS: tuple[tuple[float, int], ...] = ((0.5, 10), (1.0, 15), (2.0, 20))
# (threshold in percent, deduction)
AREA_DEDUCTIONS: tuple[tuple[float, int], ...] = ((5.0, 10), (10.0, 15))

CLOSURE_WARNING_M = 1.0
CLOSURE_ERROR_M = 2.0
AREA_INFO_PCT = 1.0
AREA_WARNING_PCT = 5.0
AREA_ERROR_PCT = 10.0

RED_CLOSURE_M = 1.0
RED_CONFIDENCE = 60
RED_AREA_PCT = 10.0
YELLOW_CLOSURE_M = 0.5
YELLOW_CONFIDENCE = 80
YELLOW_AREA_PCT = 5.0

_TIER_MESSAGES = {
    QualityLevel.RED: "Resultado requer revisão manual - inconsistências detectadas",
    QualityLevel.YELLOW: "Resultado aceitável com ressalvas - verifique os alertas",
    QualityLevel.GREEN: "Extração bem-sucedida - polígono válido",
}


class QualityAssessment(BaseModel):
    """Confidence score, warnings and tier for one parcel."""

    confidence_score: int
    warnings: list[ParcelWarning] = Field(default_factory=list)
    indicator: QualityIndicator


def area_difference_pct(area_declared: float | None, area_computed: float | None) -> float | None:
    """Percent difference of computed vs declared area, or None when not comparable."""
    if area_declared is None or area_computed is None or area_declared <= 0:
        return None
    return abs(area_computed - area_declared) / area_declared * 100.0


def compute_confidence(
    closure_error: float,
    area_declared: float | None = None,
    area_computed: float | None = None,
) -> int:
    """Confidence score in ``[50, 95]``."""
    confidence = BASE_CONFIDENCE
    for threshold, deduction in CLOSURE_DEDUCTIONS:
        if closure_error > threshold:
            confidence -= deduction

    diff = area_difference_pct(area_declared, area_computed)
    if diff is not None:
        for threshold, deduction in AREA_DEDUCTIONS:
            if diff > threshold:
                confidence -= deduction

    return max(CONFIDENCE_FLOOR, confidence)


def generate_warnings(
    closure_error: float,
    area_declared: float | None = None,
    area_computed: float | None = None,
) -> list[ParcelWarning]:
    """Ordered warnings: closure first, then area mismatch."""
    warnings: list[ParcelWarning] = []

    if closure_error > CLOSURE_WARNING_M:
        warnings.append(ParcelWarning(
            type=WarningType.CLOSURE,
            message=f"Erro de fechamento alto: {closure_error:.2f}m",
            severity=Severity.ERROR if closure_error > CLOSURE_ERROR_M else Severity.WARNING,
        ))

    diff = area_difference_pct(area_declared, area_computed)
    if diff is not None and diff > AREA_INFO_PCT:
        if diff > AREA_ERROR_PCT:
            severity = Severity.ERROR
        elif diff > AREA_WARNING_PCT:
            severity = Severity.WARNING
        else:
            severity = Severity.INFO
        warnings.append(ParcelWarning(
            type=WarningType.AREA_MISMATCH,
            message=f"Área calculada difere {diff:.2f}% da área declarada",
            severity=severity,
        ))

    return warnings


def quality_level(
    closure_error: float,
    confidence_score: int,
    area_difference: float | None = None,
) -> QualityLevel:
    """Band a parcel red / yellow / green. Red wins over yellow."""
    diff = area_difference if area_difference is not None else 0.0
    if closure_error > RED_CLOSURE_M or confidence_score < RED_CONFIDENCE or diff > RED_AREA_PCT:
        return QualityLevel.RED
    if closure_error > YELLOW_CLOSURE_M or confidence_score < YELLOW_CONFIDENCE or diff > YELLOW_AREA_PCT:
        return QualityLevel.YELLOW
    return QualityLevel.GREEN


def quality_indicator(
    closure_error: float,
    confidence_score: int,
    area_difference: float | None = None,
) -> QualityIndicator:
    level = quality_level(closure_error, confidence_score, area_difference)
    return QualityIndicator(
        level=level,
        closure_error=closure_error,
        confidence_score=confidence_score,
        area_difference=area_difference,
        message=_TIER_MESSAGES[level],
    )


def missing_segment_warning(segment_count: int) -> ParcelWarning:
    if segment_count == 0:
        message = "Nenhum segmento extraído - polígono não pode ser formado"
    else:
        message = f"Apenas {segment_count} segmento(s) - polígono incompleto"
    return ParcelWarning(type=WarningType.MISSING_SEGMENT, message=message, severity=Severity.ERROR)


def classify(
    closure_error: float,
    area_declared: float | None = None,
    area_computed: float | None = None,
    segment_count: int | None = None,
) -> QualityAssessment:
    """Run the full classifier: score, warnings and tier.

    A traverse with fewer than :data:`MIN_POLYGON_SEGMENTS` legs encloses no
    polygon: it gets a ``missing_segment`` error first, the floor score and
    therefore the red tier. ``segment_count=None`` skips the check.
    """
    score = compute_confidence(closure_error, area_declared, area_computed)
    warnings = generate_warnings(closure_error, area_declared, area_computed)
    if segment_count is not None and segment_count < MIN_POLYGON_SEGMENTS:
        score = CONFIDENCE_FLOOR
        warnings.insert(0, missing_segment_warning(segment_count))

    diff = area_difference_pct(area_declared, area_computed)
    return QualityAssessment(
        confidence_score=score,
        warnings=warnings,
        indicator=quality_indicator(closure_error, score, diff),
    )
