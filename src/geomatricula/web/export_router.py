"""FastAPI router for parcel exports: DXF, KML, GeoJSON and the PDF report."""

from __future__ import annotations

import logging
import re

from fastapi import APIRouter, HTTPException, Request, Response

from geomatricula.export.dxf import render_dxf
from geomatricula.export.geojson import render_geojson
from geomatricula.export.kml import render_kml
from geomatricula.projects.models import ProjectRecord
from geomatricula.web.project_router import get_project_or_404

logger = logging.getLogger(__name__)

router = APIRouter()

MEDIA_TYPES = {
    "dxf": "application/dxf",
    "kml": "application/vnd.google-earth.kml+xml",
    "geojson": "application/geo+json",
    "pdf": "application/pdf",
}


def _filename(record: ProjectRecord, extension: str) -> str:
    stem = record.info.matricula or record.info.name or record.project_id
    stem = re.sub(r"[^A-Za-z0-9_.-]+", "_", stem).strip("_") or record.project_id
    return f"matricula_{stem}.{extension}"


def _get_report_renderer(request: Request):
    renderer = getattr(request.app.state, "report_renderer", None)
    if renderer is None:
        raise HTTPException(status_code=503, detail="Report renderer not available")
    return renderer


@router.get("/api/projects/{project_id}/export/{fmt}")
async def export_parcel(project_id: str, fmt: str, request: Request) -> Response:
    if fmt not in MEDIA_TYPES:
        raise HTTPException(status_code=400, detail=f"Unsupported export format {fmt!r}")

    record = get_project_or_404(request, project_id)
    result = record.result
    if result is None:
        raise HTTPException(status_code=404, detail=f"Project {project_id!r} has no computed parcel")

    settings = request.app.state.settings
    title = record.info.name or "GeoMatrícula"
    if fmt == "dxf":
        content: str | bytes = render_dxf(result, title, config=settings.export)
    elif fmt == "kml":
        content = render_kml(result, title, anchor=record.anchor, config=settings.export)
    elif fmt == "geojson":
        content = render_geojson(result, anchor=record.anchor)
    else:
        content = _get_report_renderer(request).render_pdf(record.info, result)

    logger.info("Exported project %s as %s", project_id, fmt)
    return Response(
        content=content,
        media_type=MEDIA_TYPES[fmt],
        headers={"Content-Disposition": f"attachment; filename={_filename(record, fmt)}"},
    )
