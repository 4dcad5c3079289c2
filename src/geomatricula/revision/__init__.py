"""Chat-driven segment revision protocol."""

from geomatricula.revision.protocol import (
    RevisionEvent,
    RevisionManager,
    RevisionPayloadError,
    RevisionProposal,
    RevisionStateError,
    transition,
    validate_replacement,
)

__all__ = [
    "RevisionEvent",
    "RevisionManager",
    "RevisionPayloadError",
    "RevisionProposal",
    "RevisionStateError",
    "transition",
    "validate_replacement",
]
