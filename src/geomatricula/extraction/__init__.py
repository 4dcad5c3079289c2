"""Deed extraction: oracle clients and boundary coercion."""

from geomatricula.extraction.normalize import ExtractedMatricula, coerce_extraction, coerce_segment
from geomatricula.extraction.oracle import (
    ExtractionOracle,
    OracleResponseError,
    PropertyContext,
    RevisionOracle,
    RevisionReply,
)

__all__ = [
    "ExtractedMatricula",
    "ExtractionOracle",
    "OracleResponseError",
    "PropertyContext",
    "RevisionOracle",
    "RevisionReply",
    "coerce_extraction",
    "coerce_segment",
]
