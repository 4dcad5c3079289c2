"""FastAPI application for GeoMatrícula.

Hosts the pure survey-geometry core behind a small REST API: project
bookkeeping, deed extraction, chat-driven revisions and exports.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from geomatricula.core.config import Settings
from geomatricula.export.report import ReportRenderer
from geomatricula.extraction.oracle import ExtractionOracle, RevisionOracle
from geomatricula.governance.audit import AuditLogger
from geomatricula.llm.client import create_llm_client
from geomatricula.projects.store import ProjectRepository, ProjectStore
from geomatricula.revision.protocol import RevisionManager
from geomatricula.web.export_router import router as export_router
from geomatricula.web.geodesy_router import router as geodesy_router
from geomatricula.web.project_router import router as project_router
from geomatricula.web.revision_router import router as revision_router

logger = logging.getLogger(__name__)

VERSION = "0.1.0"


class HealthResponse(BaseModel):
    status: str
    service: str
    version: str = VERSION
    oracles_configured: bool


def create_app(
    settings: Settings | None = None,
    project_store: ProjectRepository | None = None,
    audit_logger: AuditLogger | None = None,
    extraction_oracle: ExtractionOracle | None = None,
    revision_oracle: RevisionOracle | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Uses the factory pattern so tests can create isolated app instances
    with mock dependencies.

    Args:
        settings: Application settings. Defaults to Settings().
        project_store: Project repository. Defaults to an in-memory store.
        audit_logger: Revision audit sink. Defaults to a JSONL logger under
            ``settings.audit.log_dir``.
        extraction_oracle: Deed extraction oracle. Built from
            ``settings.llm`` when an API key is configured.
        revision_oracle: Chat revision oracle, same defaulting rule.

    Returns:
        A configured FastAPI instance.
    """
    if settings is None:
        settings = Settings()

    logging.getLogger("geomatricula").setLevel(settings.log_level.upper())

    app = FastAPI(
        title="GeoMatrícula",
        description="Survey polygon reconstruction from Brazilian property deeds",
        version=VERSION,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if project_store is None:
        project_store = ProjectStore()

    if audit_logger is None:
        audit_logger = AuditLogger(config=settings.audit)

    if (extraction_oracle is None or revision_oracle is None) and settings.llm.api_key:
        llm_client = create_llm_client(settings.llm)
        extraction_oracle = extraction_oracle or ExtractionOracle(llm_client)
        revision_oracle = revision_oracle or RevisionOracle(llm_client)
    elif extraction_oracle is None or revision_oracle is None:
        logger.warning("No LLM API key configured, oracle endpoints will answer 503")

    app.state.settings = settings
    app.state.project_store = project_store
    app.state.audit_logger = audit_logger
    app.state.revision_manager = RevisionManager(audit_logger=audit_logger)
    app.state.extraction_oracle = extraction_oracle
    app.state.revision_oracle = revision_oracle
    app.state.report_renderer = ReportRenderer()

    app.include_router(project_router)
    app.include_router(revision_router)
    app.include_router(export_router)
    app.include_router(geodesy_router)

    @app.get("/api/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(
            status="ok",
            service="geomatricula",
            oracles_configured=extraction_oracle is not None and revision_oracle is not None,
        )

    return app
