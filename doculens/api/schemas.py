"""Pydantic request/response schemas for the DocuLens API.

Request schemas end with "Request", response schemas with "Response".
FastAPI validates incoming JSON against them and builds the OpenAPI docs
(``/docs``) from them.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from doculens.models.ingestion import FileProgress


class TriggerIngestionRequest(BaseModel):
    """Start an ingestion run; the configured document path is used when omitted."""

    document_path: str | None = Field(
        default=None,
        description="Directory to ingest. Falls back to DOCUMENT_PATH.",
    )
    recursive: bool | None = Field(
        default=None,
        description="Include subdirectories. Falls back to DOCUMENT_RECURSIVE.",
    )


class TriggerIngestionResponse(BaseModel):
    """Returned immediately; the run itself happens in the background."""

    status: str
    document_path: str
    message: str


class IngestionStatusResponse(BaseModel):
    """Whether a run is active plus the latest status of every file it touched."""

    is_in_progress: bool
    files: list[FileProgress] = Field(default_factory=list)


class HealthResponse(BaseModel):
    """Application health check response."""

    status: str
    version: str
    providers: dict[str, Any]


class ErrorResponse(BaseModel):
    """Standard error response body."""

    error: str
    detail: str | None = None
