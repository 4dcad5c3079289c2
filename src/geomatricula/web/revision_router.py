"""FastAPI router for chat-driven segment revisions and the revision audit trail."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from geomatricula.core.types import RevisionState
from geomatricula.extraction.oracle import OracleResponseError, PropertyContext
from geomatricula.projects.models import ProjectRecord
from geomatricula.revision.protocol import RevisionPayloadError, RevisionProposal, RevisionStateError
from geomatricula.web.project_router import get_project_or_404, result_payload

router = APIRouter()


# --- Request/Response models ---


class RevisionRequest(BaseModel):
    """Either a chat ``message`` for the revision oracle or a direct ``segments`` edit."""

    message: str = ""
    segments: list[Any] | None = None
    image_data_url: str | None = None
    requires_confirmation: bool = False
    warning_message: str | None = None
    change_description: str | None = None
    actor: str = "anonymous"


class ResolveRequest(BaseModel):
    actor: str | None = None


class RevisionResponse(BaseModel):
    response_text: str = ""
    proposal: dict[str, Any] | None = None
    result: dict[str, Any] | None = None


# --- Helpers ---


def _get_revision_manager(request: Request):
    manager = getattr(request.app.state, "revision_manager", None)
    if manager is None:
        raise HTTPException(status_code=503, detail="Revision manager not available")
    return manager


def _get_revision_oracle(request: Request):
    oracle = getattr(request.app.state, "revision_oracle", None)
    if oracle is None:
        raise HTTPException(status_code=503, detail="Revision oracle not available")
    return oracle


def _get_audit_logger(request: Request):
    audit = getattr(request.app.state, "audit_logger", None)
    if audit is None:
        raise HTTPException(status_code=503, detail="Audit logger not available")
    return audit


def _proposal_payload(proposal: RevisionProposal) -> dict[str, Any]:
    return proposal.model_dump(mode="json", exclude={"result"})


def _apply_if_resolved(request: Request, record: ProjectRecord, proposal: RevisionProposal) -> None:
    """Commit the proposal's recomputed parcel once it is safe or confirmed."""
    if proposal.state in (RevisionState.SAFE, RevisionState.CONFIRMED) and proposal.result is not None:
        record.result = proposal.result.model_copy(update={"project_id": record.project_id})
        request.app.state.project_store.save(record)


def _response(proposal: RevisionProposal, response_text: str = "") -> RevisionResponse:
    return RevisionResponse(
        response_text=response_text,
        proposal=_proposal_payload(proposal),
        result=result_payload(proposal.result) if proposal.result else None,
    )


def _owned_proposal(request: Request, project_id: str, proposal_id: str) -> RevisionProposal:
    try:
        proposal = _get_revision_manager(request).get(proposal_id)
    except KeyError as e:
        raise HTTPException(status_code=404, detail=str(e))
    if proposal.project_id != project_id:
        raise HTTPException(status_code=404, detail=f"Revision proposal '{proposal_id}' not found.")
    return proposal


# --- Revision endpoints ---


@router.post("/api/projects/{project_id}/revisions", response_model=RevisionResponse)
async def submit_revision(project_id: str, body: RevisionRequest, request: Request) -> RevisionResponse:
    """Revise the current traverse.

    With ``segments`` the edit is submitted as is. Otherwise ``message`` goes
    to the revision oracle; a prose reply is returned without a proposal.
    """
    record = get_project_or_404(request, project_id)
    manager = _get_revision_manager(request)

    response_text = ""
    raw_segments: Any = body.segments
    requires_confirmation = body.requires_confirmation
    warning_message = body.warning_message
    change_description = body.change_description
    ai_response: str | None = None

    if raw_segments is None:
        if not body.message.strip():
            raise HTTPException(status_code=400, detail="Provide message or segments")
        oracle = _get_revision_oracle(request)
        context = PropertyContext(
            matricula=record.info.matricula,
            owner=record.info.owner,
            city=record.info.city,
            state=record.info.state,
            area_declared=record.area_declared,
            closure_error=record.result.closure_error if record.result else None,
        )
        try:
            reply = await oracle.propose(
                record.segments, context, body.message, list(record.history), body.image_data_url
            )
        except OracleResponseError as e:
            raise HTTPException(status_code=502, detail=str(e))

        record.history.extend([
            {"role": "user", "content": body.message},
            {"role": "assistant", "content": reply.response_text},
        ])
        request.app.state.project_store.save(record)

        if reply.updated_segments is None:
            return RevisionResponse(response_text=reply.response_text)

        response_text = reply.response_text
        raw_segments = reply.updated_segments
        requires_confirmation = reply.requires_confirmation
        warning_message = reply.warning_message
        change_description = reply.change_description
        ai_response = reply.response_text

    try:
        proposal = manager.submit(
            project_id,
            record.segments,
            raw_segments,
            requires_confirmation=requires_confirmation,
            warning_message=warning_message,
            change_description=change_description,
            user_message=body.message or None,
            ai_response=ai_response,
            actor=body.actor,
            area_declared=record.area_declared,
            extraction_method=record.extraction_method,
            context=record.audit_context(),
        )
    except RevisionPayloadError as e:
        raise HTTPException(status_code=400, detail=str(e))

    _apply_if_resolved(request, record, proposal)
    return _response(proposal, response_text)


@router.get("/api/projects/{project_id}/revisions/pending")
async def get_pending_revision(project_id: str, request: Request) -> dict[str, Any] | None:
    get_project_or_404(request, project_id)
    proposal = _get_revision_manager(request).pending_for(project_id)
    return _proposal_payload(proposal) if proposal else None


@router.post(
    "/api/projects/{project_id}/revisions/{proposal_id}/confirm",
    response_model=RevisionResponse,
)
async def confirm_revision(
    project_id: str, proposal_id: str, request: Request, body: ResolveRequest | None = None
) -> RevisionResponse:
    record = get_project_or_404(request, project_id)
    _owned_proposal(request, project_id, proposal_id)
    try:
        proposal = _get_revision_manager(request).confirm(
            proposal_id, actor=body.actor if body else None, context=record.audit_context()
        )
    except RevisionStateError as e:
        raise HTTPException(status_code=409, detail=str(e))

    _apply_if_resolved(request, record, proposal)
    return _response(proposal)


@router.post(
    "/api/projects/{project_id}/revisions/{proposal_id}/reject",
    response_model=RevisionResponse,
)
async def reject_revision(
    project_id: str, proposal_id: str, request: Request, body: ResolveRequest | None = None
) -> RevisionResponse:
    record = get_project_or_404(request, project_id)
    _owned_proposal(request, project_id, proposal_id)
    try:
        proposal = _get_revision_manager(request).reject(
            proposal_id, actor=body.actor if body else None, context=record.audit_context()
        )
    except RevisionStateError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return _response(proposal)


# --- Audit endpoints ---


@router.get("/api/projects/{project_id}/audit")
async def get_audit_trail(project_id: str, request: Request) -> list[dict[str, Any]]:
    get_project_or_404(request, project_id)
    audit = _get_audit_logger(request)
    return [event.model_dump(mode="json") for event in audit.query({"project_id": project_id})]


@router.get("/api/audit/verify")
async def verify_audit_chain(request: Request) -> dict[str, Any]:
    audit = _get_audit_logger(request)
    return {"valid": audit.verify_chain(), "last_hash": audit.last_hash}
