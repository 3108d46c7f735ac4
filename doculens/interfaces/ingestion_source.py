"""Abstract base class for ingestion sources.

A source knows which documents it currently holds and how to turn one of
them into chunks.  The :class:`~doculens.services.ingestion.data_ingestor.DataIngestor`
drives any source through this contract, which is what lets tests swap in
a mock source.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from doculens.models.ingestion import IngestedChunk, IngestedDocument


class IIngestionSource(ABC):
    """Contract for a scannable origin of documents (e.g. a directory)."""

    @property
    @abstractmethod
    def source_id(self) -> str:
        """Identifier scoping every record this source produces."""

    @abstractmethod
    async def discover_changed(
        self, existing: list[IngestedDocument]
    ) -> list[IngestedDocument]:
        """Return documents that are new or whose version differs from *existing*."""

    @abstractmethod
    async def discover_deleted(
        self, existing: list[IngestedDocument]
    ) -> list[IngestedDocument]:
        """Return records in *existing* owned by this source that are gone."""

    @abstractmethod
    async def chunks_for(self, document: IngestedDocument) -> list[IngestedChunk]:
        """Extract and chunk *document*, emitting its progress events."""
