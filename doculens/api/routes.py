"""FastAPI route definitions for the DocuLens API.

All endpoints live under ``/api/v1``.  Dependencies are resolved from
``app.state`` via FastAPI's ``Depends``; the lifespan in
``doculens.main`` puts them there at startup, and tests set mocks
there directly.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Any

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request

from doculens import __version__
from doculens.api.schemas import (
    ErrorResponse,
    HealthResponse,
    IngestionStatusResponse,
    TriggerIngestionRequest,
    TriggerIngestionResponse,
)
from doculens.config.settings import Settings
from doculens.models.ingestion import IngestionOptions
from doculens.pipeline.progress_tracker import ProgressTracker
from doculens.services.ingestion.ingestion_manager import IngestionManager
from doculens.utils.errors import DocumentSourceNotFoundError
from doculens.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

router = APIRouter(prefix="/api/v1")


# ---------------------------------------------------------------------------
# Dependency helpers
# ---------------------------------------------------------------------------


def _get_ingestion_manager(request: Request) -> IngestionManager:
    return request.app.state.ingestion_manager


def _get_progress_tracker(request: Request) -> ProgressTracker:
    return request.app.state.progress_tracker


def _get_settings(request: Request) -> Settings:
    return request.app.state.settings


ManagerDep = Annotated[IngestionManager, Depends(_get_ingestion_manager)]
TrackerDep = Annotated[ProgressTracker, Depends(_get_progress_tracker)]
SettingsDep = Annotated[Settings, Depends(_get_settings)]


# ---------------------------------------------------------------------------
# Background task helpers
# ---------------------------------------------------------------------------


async def _run_ingestion_in_background(
    manager: IngestionManager,
    document_path: str,
    options: IngestionOptions,
) -> None:
    """Run one ingestion after the 202 response has been sent.

    Nothing can receive an exception from here, so failures are logged
    and dropped.
    """
    try:
        await manager.trigger_ingestion(document_path, options)
    except Exception as exc:
        _logger.error(
            "background_ingestion_failed",
            document_path=document_path,
            error=str(exc),
        )


# ---------------------------------------------------------------------------
# Ingestion endpoints
# ---------------------------------------------------------------------------


@router.post(
    "/ingestion",
    status_code=202,
    response_model=TriggerIngestionResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Start an ingestion run in the background",
)
async def trigger_ingestion(
    body: TriggerIngestionRequest,
    background_tasks: BackgroundTasks,
    manager: ManagerDep,
    settings: SettingsDep,
) -> TriggerIngestionResponse:
    """Schedule ingestion of a document directory and return immediately.

    A run that is already active makes the new one a no-op; watch
    ``/ingestion/status`` or the WebSocket for progress.
    """
    document_path = (body.document_path or settings.document_path).strip()
    if not document_path:
        raise HTTPException(status_code=400, detail="No document path given or configured")
    if not Path(document_path).is_dir():
        raise DocumentSourceNotFoundError(
            message=f"Document directory not found: {document_path}"
        )

    options = IngestionOptions.from_settings(settings)
    if body.recursive is not None:
        options = options.model_copy(update={"recursive": body.recursive})

    background_tasks.add_task(_run_ingestion_in_background, manager, document_path, options)

    return TriggerIngestionResponse(
        status="accepted",
        document_path=document_path,
        message=(
            "Ingestion already in progress; this request will be skipped."
            if manager.is_in_progress
            else "Ingestion scheduled."
        ),
    )


@router.get(
    "/ingestion/status",
    response_model=IngestionStatusResponse,
    summary="Current ingestion state and per-file progress",
)
async def get_ingestion_status(
    manager: ManagerDep,
    tracker: TrackerDep,
) -> IngestionStatusResponse:
    """Return whether a run is active plus the latest status of each file."""
    return IngestionStatusResponse(
        is_in_progress=manager.is_in_progress,
        files=tracker.get_snapshot(),
    )


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Application health check",
)
async def health_check(request: Request) -> HealthResponse:
    """Return application health, version, and vector store availability."""
    providers: dict[str, Any] = {}

    documents = getattr(request.app.state, "documents_collection", None)
    chunks = getattr(request.app.state, "chunks_collection", None)
    for name, collection in (("documents", documents), ("chunks", chunks)):
        if collection is None:
            providers[name] = False
            continue
        try:
            providers[f"{name}_count"] = await collection.count()
            providers[name] = True
        except Exception as exc:
            _logger.warning("health_collection_unavailable", collection=name, error=str(exc))
            providers[name] = False

    status = "healthy" if providers["documents"] and providers["chunks"] else "degraded"

    return HealthResponse(
        status=status,
        version=__version__,
        providers=providers,
    )
