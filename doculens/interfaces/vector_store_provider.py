"""Abstract base class for vector-store collections.

A collection is treated as an opaque key-value store with metadata
filtering and, for chunk records, similarity search.  The ingestion core
uses two of them: one holding :class:`IngestedDocument` records and one
holding :class:`IngestedChunk` records.

Filters are flat ``{field: value}`` dicts; every pair must match.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Generic, TypeVar

from pydantic import BaseModel

from doculens.models.ingestion import RetrievedChunk

RecordT = TypeVar("RecordT", bound=BaseModel)


# Concrete implementations:
#   ChromaDBCollection  (doculens/providers/vector_store/chromadb_provider.py)
class IVectorCollection(ABC, Generic[RecordT]):
    """Contract for one vector-store collection of ``RecordT`` records."""

    @abstractmethod
    async def ensure_exists(self) -> None:
        """Create the backing collection if it does not exist yet."""

    @abstractmethod
    async def list_all(self, where: dict[str, Any] | None = None) -> list[RecordT]:
        """Return every record matching *where* (all records when ``None``)."""

    @abstractmethod
    async def upsert(self, records: list[RecordT]) -> int:
        """Insert or replace *records* by key.

        Returns
        -------
        int
            Number of records written.
        """

    @abstractmethod
    async def delete_by_keys(self, keys: list[str]) -> None:
        """Delete the records with the given keys.  Unknown keys are ignored."""

    @abstractmethod
    async def delete_where(self, where: dict[str, Any]) -> int:
        """Delete every record matching *where*.

        Returns
        -------
        int
            Number of records deleted.
        """

    @abstractmethod
    async def search(
        self,
        query_text: str,
        top_k: int = 5,
        where: dict[str, Any] | None = None,
    ) -> list[RetrievedChunk]:
        """Similarity search over the collection, best match first.

        Only meaningful for chunk collections; document collections raise.
        """

    @abstractmethod
    async def count(self) -> int:
        """Return the number of records stored."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return the backend name, e.g. ``"chromadb"``."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the backend is reachable."""
