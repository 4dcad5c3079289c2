"""FastAPI router for projects, deed extraction and stateless parcel computation."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from geomatricula.core.types import ExtractionMethod
from geomatricula.extraction.normalize import (
    ExtractedMatricula,
    coerce_extraction,
    coerce_segments,
    coerce_urban_dimensions,
)
from geomatricula.extraction.oracle import OracleResponseError
from geomatricula.geodesy.utm import convert_utm_anchor
from geomatricula.geometry.models import ParcelResult
from geomatricula.geometry.parcel import build_parcel_result, parcel_from_extraction, resolve_segments
from geomatricula.geometry.urban import DEFAULT_DEFLECTION_START, segments_from_deflection_text
from geomatricula.projects.models import ProjectInfo, ProjectRecord

logger = logging.getLogger(__name__)

router = APIRouter()


# --- Request/Response models ---


class CreateProjectRequest(BaseModel):
    name: str
    owner_id: str = "anonymous"
    matricula: str = ""
    owner: str = ""
    registry_office: str = ""
    property_address: str = ""
    city: str = ""
    state: str = ""
    technical_responsible: str = ""
    crea: str = ""
    observations: str = ""


class UpdateInfoRequest(BaseModel):
    name: str | None = None
    matricula: str | None = None
    owner: str | None = None
    registry_office: str | None = None
    property_address: str | None = None
    city: str | None = None
    state: str | None = None
    technical_responsible: str | None = None
    crea: str | None = None
    observations: str | None = None


class ExtractionRequest(BaseModel):
    document_text: str | None = None
    image_data_url: str | None = None
    payload: dict[str, Any] | None = None
    extraction_method: ExtractionMethod = ExtractionMethod.AI


class ComputeRequest(BaseModel):
    segments: list[Any] | None = None
    urban_dimensions: dict[str, Any] | None = None
    deflection_text: str | None = None
    initial_azimuth: float = DEFAULT_DEFLECTION_START
    area_declared: float | None = Field(default=None, gt=0)
    extraction_method: ExtractionMethod = ExtractionMethod.HYBRID


class ProjectResponse(BaseModel):
    project_id: str
    owner_id: str
    info: dict[str, Any]
    extraction_method: str
    extracted: dict[str, Any] | None = None
    result: dict[str, Any] | None = None
    anchor: dict[str, float] | None = None
    created_at: str
    updated_at: str


# --- Helpers ---


def _get_project_store(request: Request):
    store = getattr(request.app.state, "project_store", None)
    if store is None:
        raise HTTPException(status_code=503, detail="Project store not available")
    return store


def _get_extraction_oracle(request: Request):
    oracle = getattr(request.app.state, "extraction_oracle", None)
    if oracle is None:
        raise HTTPException(status_code=503, detail="Extraction oracle not available")
    return oracle


def get_project_or_404(request: Request, project_id: str) -> ProjectRecord:
    record = _get_project_store(request).get(project_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"Project {project_id!r} not found")
    return record


def result_payload(result: ParcelResult) -> dict[str, Any]:
    payload = result.model_dump(mode="json")
    payload["vertices"] = [list(v) for v in result.vertices]
    return payload


def _to_response(record: ProjectRecord) -> ProjectResponse:
    return ProjectResponse(
        project_id=record.project_id,
        owner_id=record.owner_id,
        info=record.info.model_dump(),
        extraction_method=str(record.extraction_method),
        extracted=record.extracted.model_dump(mode="json") if record.extracted else None,
        result=result_payload(record.result) if record.result else None,
        anchor=record.anchor.model_dump() if record.anchor else None,
        created_at=record.created_at.isoformat(),
        updated_at=record.updated_at.isoformat(),
    )


def _merge_extracted_info(info: ProjectInfo, extracted: ExtractedMatricula) -> ProjectInfo:
    """Fill blank identification fields with what the deed says."""
    updates = {
        key: value
        for key, value in {
            "matricula": extracted.matricula,
            "owner": extracted.owner,
            "registry_office": extracted.registry_office,
            "property_address": extracted.property_address,
            "city": extracted.city,
            "state": extracted.state,
        }.items()
        if value and not getattr(info, key)
    }
    return info.model_copy(update=updates)


# --- Project endpoints ---


@router.post("/api/projects", response_model=ProjectResponse, status_code=201)
async def create_project(body: CreateProjectRequest, request: Request) -> ProjectResponse:
    store = _get_project_store(request)
    record = ProjectRecord(
        owner_id=body.owner_id,
        info=ProjectInfo(**body.model_dump(exclude={"owner_id"})),
    )
    store.save(record)
    logger.info("Created project %s (%s)", record.project_id, record.info.name)
    return _to_response(record)


@router.get("/api/projects")
async def list_projects(request: Request, owner_id: str | None = None) -> list[dict[str, Any]]:
    store = _get_project_store(request)
    records = store.list_all() if owner_id is None else store.list_by_owner(owner_id)
    return [
        {
            "project_id": r.project_id,
            "name": r.info.name,
            "matricula": r.info.matricula,
            "city": r.info.city,
            "state": r.info.state,
            "area": r.result.area_computed if r.result else None,
            "confidence_score": r.result.confidence_score if r.result else None,
            "updated_at": r.updated_at.isoformat(),
        }
        for r in records
    ]


@router.get("/api/projects/{project_id}", response_model=ProjectResponse)
async def get_project(project_id: str, request: Request) -> ProjectResponse:
    return _to_response(get_project_or_404(request, project_id))


@router.patch("/api/projects/{project_id}/info", response_model=ProjectResponse)
async def update_project_info(
    project_id: str, body: UpdateInfoRequest, request: Request
) -> ProjectResponse:
    record = get_project_or_404(request, project_id)
    record.info = record.info.model_copy(update=body.model_dump(exclude_none=True))
    _get_project_store(request).save(record)
    return _to_response(record)


@router.post("/api/projects/{project_id}/extraction", response_model=ProjectResponse)
async def extract_matricula(
    project_id: str, body: ExtractionRequest, request: Request
) -> ProjectResponse:
    """Extract the deed and compute the parcel.

    A ready-made oracle ``payload`` is coerced directly; otherwise
    ``document_text`` or ``image_data_url`` is sent to the extraction oracle.
    """
    record = get_project_or_404(request, project_id)

    if body.payload is not None:
        extracted = coerce_extraction(body.payload)
    elif body.document_text or body.image_data_url:
        oracle = _get_extraction_oracle(request)
        try:
            if body.document_text:
                extracted = await oracle.extract_from_text(body.document_text)
            else:
                extracted = await oracle.extract_from_image(body.image_data_url)
        except OracleResponseError as e:
            raise HTTPException(status_code=502, detail=str(e))
    else:
        raise HTTPException(
            status_code=400, detail="Provide payload, document_text or image_data_url"
        )

    settings = request.app.state.settings
    # a pending edit was computed against the traverse being replaced
    manager = getattr(request.app.state, "revision_manager", None)
    if manager is not None:
        manager.supersede(record.project_id)

    record.extracted = extracted
    record.extraction_method = body.extraction_method
    record.info = _merge_extracted_info(record.info, extracted)
    record.result = parcel_from_extraction(extracted, body.extraction_method, record.project_id)
    record.anchor = convert_utm_anchor(
        extracted.utm_coordinates, fallback_state=extracted.state, config=settings.geodesy
    )
    _get_project_store(request).save(record)
    return _to_response(record)


@router.get("/api/projects/{project_id}/result")
async def get_result(project_id: str, request: Request) -> dict[str, Any]:
    record = get_project_or_404(request, project_id)
    if record.result is None:
        raise HTTPException(status_code=404, detail=f"Project {project_id!r} has no computed parcel")
    return result_payload(record.result)


# --- Stateless computation ---


@router.post("/api/parcels/compute")
async def compute_parcel(body: ComputeRequest) -> dict[str, Any]:
    """Compute a parcel from segments, urban lot dimensions or a deflection walk."""
    if body.segments:
        segments = coerce_segments(body.segments)
    elif body.deflection_text:
        segments = segments_from_deflection_text(body.deflection_text, body.initial_azimuth)
    else:
        segments = resolve_segments([], coerce_urban_dimensions(body.urban_dimensions))

    if not segments:
        raise HTTPException(status_code=400, detail="No usable traverse in request")
    result = build_parcel_result(
        segments, area_declared=body.area_declared, extraction_method=body.extraction_method
    )
    return result_payload(result)
