"""Chat-driven segment revision protocol.

A revision replaces the whole traverse of a project. Its lifecycle::

    proposed -> safe                                  (applied at once)
    proposed -> pending_confirmation -> confirmed     (user accepted the risk)
                                     -> rejected      (user cancelled)
                                     -> superseded    (a newer proposal arrived)

``safe``, ``confirmed``, ``rejected`` and ``superseded`` are terminal.
:func:`transition` is a pure reducer over immutable proposals;
:class:`RevisionManager` is the stateful host-facing wrapper that keeps at
most one pending proposal per project and writes the audit trail.
"""

from __future__ import annotations

import logging
import threading
import uuid
from collections.abc import Mapping
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any, Sequence

from pydantic import BaseModel, ConfigDict, Field

from geomatricula.core.types import AuditAction, AuditEvent, ExtractionMethod, RevisionState
from geomatricula.extraction.normalize import (
    BEARING_KEYS,
    DISTANCE_KEYS,
    coerce_segment,
    parse_decimal,
)
from geomatricula.geometry.models import ParcelResult, Segment
from geomatricula.geometry.parcel import build_parcel_result
from geomatricula.geometry.quality import MIN_POLYGON_SEGMENTS
from geomatricula.geometry.traverse import reconstruct
from geomatricula.governance.audit import AuditLogger

logger = logging.getLogger(__name__)

MIN_SEGMENTS = MIN_POLYGON_SEGMENTS

TERMINAL_STATES = frozenset({
    RevisionState.SAFE,
    RevisionState.CONFIRMED,
    RevisionState.REJECTED,
    RevisionState.SUPERSEDED,
})


class RevisionPayloadError(ValueError):
    """A proposed segment array is not a usable whole-traverse replacement."""


class RevisionStateError(ValueError):
    """The requested transition is not allowed from the proposal's state."""


class RevisionEvent(StrEnum):
    APPLY = "apply"
    HOLD = "hold"
    CONFIRM = "confirm"
    REJECT = "reject"
    SUPERSEDE = "supersede"


# (from_state, event) -> to_state
_TRANSITIONS: dict[tuple[RevisionState, RevisionEvent], RevisionState] = {
    (RevisionState.PROPOSED, RevisionEvent.APPLY): RevisionState.SAFE,
    (RevisionState.PROPOSED, RevisionEvent.HOLD): RevisionState.PENDING_CONFIRMATION,
    (RevisionState.PROPOSED, RevisionEvent.REJECT): RevisionState.REJECTED,
    (RevisionState.PROPOSED, RevisionEvent.SUPERSEDE): RevisionState.SUPERSEDED,
    (RevisionState.PENDING_CONFIRMATION, RevisionEvent.CONFIRM): RevisionState.CONFIRMED,
    (RevisionState.PENDING_CONFIRMATION, RevisionEvent.REJECT): RevisionState.REJECTED,
    (RevisionState.PENDING_CONFIRMATION, RevisionEvent.SUPERSEDE): RevisionState.SUPERSEDED,
}

_RECOMPUTE_ON_ENTRY = frozenset({RevisionState.SAFE, RevisionState.CONFIRMED})


class RevisionProposal(BaseModel):
    """One proposed replacement of a project's traverse."""

    model_config = ConfigDict(frozen=True)

    proposal_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    project_id: str
    state: RevisionState = RevisionState.PROPOSED
    segments_before: tuple[Segment, ...]
    segments_after: tuple[Segment, ...]
    requires_confirmation: bool = False
    warning_message: str | None = None
    change_description: str = ""
    user_message: str | None = None
    ai_response: str | None = None
    actor: str = "anonymous"
    area_declared: float | None = None
    extraction_method: ExtractionMethod = ExtractionMethod.AI
    result: ParcelResult | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES


def validate_replacement(raw_segments: Any) -> list[Segment]:
    """Validate an incoming segment array as a full traverse replacement.

    The array must be a non-empty list of objects, each carrying a bearing and
    a readable distance, with indices forming ``1..n`` once sorted, and at
    least three legs. Derived fields in the payload are discarded.

    Returns:
        Reconstructed segments ordered by index.

    Raises:
        RevisionPayloadError: If any part of the payload is unusable. The
            whole proposal is rejected; nothing is partially applied.
    """
    if not isinstance(raw_segments, list) or not raw_segments:
        raise RevisionPayloadError("Updated segments must be a non-empty list")

    segments: list[Segment] = []
    for position, raw in enumerate(raw_segments, start=1):
        if not isinstance(raw, Mapping):
            raise RevisionPayloadError(f"Segment at position {position} is not an object")
        if not any(raw.get(key) not in (None, "") for key in BEARING_KEYS):
            raise RevisionPayloadError(f"Segment at position {position} has no bearing")
        distance = next((raw[key] for key in DISTANCE_KEYS if raw.get(key) not in (None, "")), None)
        if parse_decimal(distance) is None:
            raise RevisionPayloadError(f"Segment at position {position} has no readable distance")
        segments.append(coerce_segment(raw, position))

    indices = sorted(s.index for s in segments)
    if indices != list(range(1, len(segments) + 1)):
        raise RevisionPayloadError(
            f"Segment indices must be 1..{len(segments)} without gaps or duplicates, got {indices}"
        )
    if len(segments) < MIN_SEGMENTS:
        raise RevisionPayloadError(
            f"A traverse needs at least {MIN_SEGMENTS} segments, got {len(segments)}"
        )

    return reconstruct(segments)


def transition(proposal: RevisionProposal, event: RevisionEvent) -> RevisionProposal:
    """Apply ``event`` to ``proposal`` and return the new proposal.

    Entering ``safe`` or ``confirmed`` recomputes metrics and quality over the
    proposed traverse and attaches the new :class:`ParcelResult`.

    Raises:
        RevisionStateError: If ``event`` is not allowed in the current state.
    """
    target = _TRANSITIONS.get((proposal.state, event))
    if target is None:
        raise RevisionStateError(
            f"Proposal {proposal.proposal_id} is '{proposal.state}', cannot {event}."
        )

    update: dict[str, Any] = {"state": target, "updated_at": datetime.now(timezone.utc)}
    if target in _RECOMPUTE_ON_ENTRY:
        update["result"] = build_parcel_result(
            proposal.segments_after,
            area_declared=proposal.area_declared,
            extraction_method=proposal.extraction_method,
            project_id=proposal.project_id,
        )
    return proposal.model_copy(update=update)


def create_proposal(
    project_id: str,
    current_segments: Sequence[Segment],
    raw_segments: Any,
    *,
    requires_confirmation: bool = False,
    warning_message: str | None = None,
    change_description: str | None = None,
    user_message: str | None = None,
    ai_response: str | None = None,
    actor: str = "anonymous",
    area_declared: float | None = None,
    extraction_method: ExtractionMethod = ExtractionMethod.AI,
) -> RevisionProposal:
    """Validate ``raw_segments`` and wrap them in a ``proposed`` proposal."""
    return RevisionProposal(
        project_id=project_id,
        segments_before=tuple(current_segments),
        segments_after=tuple(validate_replacement(raw_segments)),
        requires_confirmation=requires_confirmation,
        warning_message=warning_message,
        change_description=change_description or "",
        user_message=user_message,
        ai_response=ai_response,
        actor=actor,
        area_declared=area_declared,
        extraction_method=extraction_method,
    )


class RevisionManager:
    """Host-facing revision bookkeeping.

    Keeps proposals in memory, guarantees a single live pending proposal per
    project, and writes an audit event for every applied, confirmed or
    cancelled revision.

    Args:
        audit_logger: Sink for revision audit events. Optional so the manager
            can run without persistence in tests.
    """

    def __init__(self, audit_logger: AuditLogger | None = None) -> None:
        self._audit = audit_logger
        self._lock = threading.Lock()
        self._proposals: dict[str, RevisionProposal] = {}
        self._pending: dict[str, str] = {}

    def submit(
        self,
        project_id: str,
        current_segments: Sequence[Segment],
        raw_segments: Any,
        *,
        requires_confirmation: bool = False,
        warning_message: str | None = None,
        change_description: str | None = None,
        user_message: str | None = None,
        ai_response: str | None = None,
        actor: str = "anonymous",
        area_declared: float | None = None,
        extraction_method: ExtractionMethod = ExtractionMethod.AI,
        context: dict[str, Any] | None = None,
    ) -> RevisionProposal:
        """Submit a new traverse for ``project_id``.

        Any pending proposal for the same project is superseded first. The
        new proposal is applied at once unless it requires confirmation.

        Raises:
            RevisionPayloadError: If the segment payload is unusable.
        """
        proposal = create_proposal(
            project_id,
            current_segments,
            raw_segments,
            requires_confirmation=requires_confirmation,
            warning_message=warning_message,
            change_description=change_description,
            user_message=user_message,
            ai_response=ai_response,
            actor=actor,
            area_declared=area_declared,
            extraction_method=extraction_method,
        )

        with self._lock:
            self._supersede_pending(project_id)
            event = RevisionEvent.HOLD if requires_confirmation else RevisionEvent.APPLY
            proposal = transition(proposal, event)
            self._proposals[proposal.proposal_id] = proposal
            if proposal.state == RevisionState.PENDING_CONFIRMATION:
                self._pending[project_id] = proposal.proposal_id

        logger.info(
            "Revision %s for project %s: %s", proposal.proposal_id, project_id, proposal.state
        )
        if proposal.state == RevisionState.SAFE:
            self._record(proposal, AuditAction.AI_CORRECTION, context)
        return proposal

    def confirm(
        self, proposal_id: str, actor: str | None = None, context: dict[str, Any] | None = None
    ) -> RevisionProposal:
        """Confirm a pending proposal. The user acknowledges the warned risk.

        Raises:
            KeyError: If proposal_id is not found.
            RevisionStateError: If the proposal is not pending confirmation.
        """
        with self._lock:
            proposal = transition(self._get(proposal_id), RevisionEvent.CONFIRM)
            if actor:
                proposal = proposal.model_copy(update={"actor": actor})
            self._store_resolved(proposal)

        logger.info("Revision %s confirmed by %s", proposal_id, proposal.actor)
        self._record(proposal, AuditAction.MANUAL_CONFIRMED, context, risk_acknowledged=True)
        return proposal

    def reject(
        self, proposal_id: str, actor: str | None = None, context: dict[str, Any] | None = None
    ) -> RevisionProposal:
        """Cancel a pending proposal, leaving the traverse untouched.

        Raises:
            KeyError: If proposal_id is not found.
            RevisionStateError: If the proposal is already terminal.
        """
        with self._lock:
            proposal = transition(self._get(proposal_id), RevisionEvent.REJECT)
            if actor:
                proposal = proposal.model_copy(update={"actor": actor})
            self._store_resolved(proposal)

        logger.info("Revision %s rejected by %s", proposal_id, proposal.actor)
        self._record(proposal, AuditAction.CANCELLED, context)
        return proposal

    def supersede(self, project_id: str) -> RevisionProposal | None:
        """Retire the project's pending proposal because its traverse was replaced.

        Returns the superseded proposal, or None when nothing was pending.
        """
        with self._lock:
            return self._supersede_pending(project_id)

    def get(self, proposal_id: str) -> RevisionProposal:
        """Retrieve a proposal by ID.

        Raises:
            KeyError: If proposal_id is not found.
        """
        with self._lock:
            return self._get(proposal_id)

    def pending_for(self, project_id: str) -> RevisionProposal | None:
        with self._lock:
            proposal_id = self._pending.get(project_id)
            return self._proposals[proposal_id] if proposal_id else None

    @property
    def pending_proposals(self) -> list[RevisionProposal]:
        with self._lock:
            return [self._proposals[pid] for pid in self._pending.values()]

    def _get(self, proposal_id: str) -> RevisionProposal:
        if proposal_id not in self._proposals:
            raise KeyError(f"Revision proposal '{proposal_id}' not found.")
        return self._proposals[proposal_id]

    def _store_resolved(self, proposal: RevisionProposal) -> None:
        self._proposals[proposal.proposal_id] = proposal
        if self._pending.get(proposal.project_id) == proposal.proposal_id:
            del self._pending[proposal.project_id]

    def _supersede_pending(self, project_id: str) -> RevisionProposal | None:
        pending_id = self._pending.get(project_id)
        if pending_id is None:
            return None
        superseded = transition(self._proposals[pending_id], RevisionEvent.SUPERSEDE)
        self._store_resolved(superseded)
        logger.info("Revision %s superseded for project %s", pending_id, project_id)
        return superseded

    def _record(
        self,
        proposal: RevisionProposal,
        action: AuditAction,
        context: dict[str, Any] | None,
        risk_acknowledged: bool = False,
    ) -> None:
        if self._audit is None:
            return
        self._audit.log(AuditEvent(
            project_id=proposal.project_id,
            actor=proposal.actor,
            action=action,
            change_description=proposal.change_description,
            warning_message=proposal.warning_message,
            risk_acknowledged=risk_acknowledged,
            user_message=proposal.user_message,
            ai_response=proposal.ai_response,
            segments_before=[s.model_dump(mode="json") for s in proposal.segments_before],
            segments_after=[s.model_dump(mode="json") for s in proposal.segments_after],
            details={"proposal_id": proposal.proposal_id, **(context or {})},
        ))
