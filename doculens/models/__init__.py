"""Pydantic models shared across the ingestion pipeline, API and CLI."""

from doculens.models.configuration import ConfigurationChangedEvent
from doculens.models.ingestion import (
    FileProgress,
    IngestedChunk,
    IngestedDocument,
    IngestionOptions,
    IngestionRunResult,
    IngestionStatus,
    RetrievedChunk,
)

__all__ = [
    "ConfigurationChangedEvent",
    "FileProgress",
    "IngestedChunk",
    "IngestedDocument",
    "IngestionOptions",
    "IngestionRunResult",
    "IngestionStatus",
    "RetrievedChunk",
]
