"""Ingestion data models for the DocuLens knowledge base.

Defines Pydantic v2 models for the two vector-store record types (source
documents and their chunks), per-file progress events, the configuration
snapshot an ingestion run is started with, and the run summary.
All models use frozen config so a record cannot drift after it is built.

Record lifecycle:
    1. SCAN: the document source walks a directory and builds one
       IngestedDocument per qualifying file (key, id and version are derived
       from the path and mtime, never random).
    2. CHUNK: new or modified documents are extracted and cut into
       IngestedChunk records that point back at their document_id.
    3. STORE: the data ingestor writes chunks first and the document record
       last, and deletes both for files that disappeared.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Stored records
# ---------------------------------------------------------------------------
class IngestedDocument(BaseModel):
    """One row per source file known to the vector store."""

    model_config = ConfigDict(frozen=True)

    key: str = Field(description="Primary key of the document record: doc_{source_id}_{document_id}.")
    source_id: str = Field(
        description="Directory + recursion mode that produced this record; scopes ownership."
    )
    document_id: str = Field(
        description="Flat, filesystem-independent token derived from the relative path."
    )
    document_version: str = Field(
        description="Last-modified time (UTC, ISO-8601); compared for equality only."
    )


class IngestedChunk(BaseModel):
    """One retrievable text unit.

    The embedding is not part of the model: the chunks collection computes
    it from ``text`` when the chunk is upserted.
    """

    model_config = ConfigDict(frozen=True)

    key: str = Field(description="Unique chunk key.")
    document_id: str = Field(description="document_id of the owning IngestedDocument.")
    source_id: str = Field(default="", description="source_id of the owning IngestedDocument.")
    page_number: int = Field(
        ge=1,
        description="PDF page number, or 1-based sequential index for TXT/DOCX.",
    )
    text: str = Field(min_length=1, description="Trimmed chunk content, never empty.")
    file_name: str = Field(description="Source file name, for citation display.")
    file_path: str = Field(description="Absolute source file path, for citation display.")


class RetrievedChunk(BaseModel):
    """A chunk returned from similarity search, with its score and citation."""

    model_config = ConfigDict(frozen=True)

    chunk: IngestedChunk
    similarity_score: float = Field(
        ge=0.0,
        le=1.0,
        description="Cosine similarity between query and chunk (0-1).",
    )
    formatted_citation: str = Field(
        description="Human-readable citation, e.g. 'handbook.pdf, p. 4'."
    )


# ---------------------------------------------------------------------------
# Progress events
# ---------------------------------------------------------------------------
class IngestionStatus(str, Enum):
    """Per-file lifecycle: Waiting -> Ingesting -> (Done | Failed)."""

    WAITING = "Waiting"
    INGESTING = "Ingesting"
    DONE = "Done"
    FAILED = "Failed"


class FileProgress(BaseModel):
    """A single progress event for one file."""

    model_config = ConfigDict(frozen=True)

    file_name: str
    status: IngestionStatus
    error: str | None = None
    elapsed_ms: int | None = Field(default=None, ge=0)


# ---------------------------------------------------------------------------
# Run configuration and result
# ---------------------------------------------------------------------------
class IngestionOptions(BaseModel):
    """Configuration snapshot handed to an ingestion run at trigger time."""

    model_config = ConfigDict(frozen=True)

    chunk_size: int = Field(default=1000, gt=0, description="Fixed-window size in characters.")
    chunk_overlap: int = Field(default=200, ge=0, description="Window overlap in characters.")
    recursive: bool = Field(default=True, description="Scan subdirectories too.")
    paragraph_max_tokens: int = Field(
        default=200, gt=0, description="Target paragraph size for PDF pages."
    )
    batch_size: int = Field(default=100, gt=0, description="Chunks per vector-store upsert.")
    max_concurrency: int = Field(default=1, gt=0, description="Documents processed at once.")

    @classmethod
    def from_settings(cls, settings) -> IngestionOptions:  # noqa: ANN001
        """Build a snapshot from an application :class:`Settings` instance."""
        return cls(
            chunk_size=settings.chunk_size,
            chunk_overlap=settings.chunk_overlap,
            recursive=settings.document_recursive,
            paragraph_max_tokens=settings.paragraph_max_tokens,
            batch_size=settings.ingestion_batch_size,
            max_concurrency=settings.ingestion_max_concurrency,
        )


class IngestionRunResult(BaseModel):
    """Summary of one reconciliation pass over a document source."""

    model_config = ConfigDict(frozen=True)

    source_id: str
    documents_ingested: int = Field(default=0, ge=0)
    documents_deleted: int = Field(default=0, ge=0)
    documents_failed: list[str] = Field(
        default_factory=list, description="document_ids whose update was aborted."
    )
    chunks_written: int = Field(default=0, ge=0)
    elapsed_ms: int = Field(default=0, ge=0)
