"""Shared pytest fixtures for the DocuLens test suite."""

from __future__ import annotations

import hashlib
import struct
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from doculens.interfaces.embedding_provider import IEmbeddingProvider
from doculens.interfaces.vector_store_provider import IVectorCollection, RecordT
from doculens.models.ingestion import (
    FileProgress,
    IngestedChunk,
    IngestedDocument,
    RetrievedChunk,
)
from doculens.pipeline.progress_tracker import ProgressTracker
from doculens.utils.errors import VectorStoreError

# ---------------------------------------------------------------------------
# In-memory mock providers
# ---------------------------------------------------------------------------

_EMBEDDING_DIM = 64


def _hash_to_vector(text: str, dim: int = _EMBEDDING_DIM) -> list[float]:
    """Generate a deterministic fixed-length unit vector by hashing *text*."""
    digest = hashlib.sha256(text.encode("utf-8")).digest()
    raw = digest
    while len(raw) < dim * 4:
        raw += hashlib.sha256(raw).digest()
    raw = raw[: dim * 4]
    # Unsigned ints keep every component finite, unlike raw float bytes.
    values = [v / 0xFFFFFFFF - 0.5 for v in struct.unpack(f"<{dim}I", raw)]
    magnitude = max(sum(v * v for v in values) ** 0.5, 1e-10)
    return [v / magnitude for v in values]


class MockEmbeddingProvider(IEmbeddingProvider):
    """In-memory deterministic embedding provider for tests."""

    async def embed(self, texts: list[str]) -> list[list[float]]:
        return [_hash_to_vector(t) for t in texts]

    async def embed_single(self, text: str) -> list[float]:
        return _hash_to_vector(text)

    def get_dimension(self) -> int:
        return _EMBEDDING_DIM

    def get_provider_name(self) -> str:
        return "mock-embedding"

    def is_available(self) -> bool:
        return True


def _matches(record: Any, where: dict[str, Any] | None) -> bool:
    if not where:
        return True
    return all(getattr(record, field, None) == value for field, value in where.items())


class MockVectorCollection(IVectorCollection[RecordT]):
    """In-memory collection keyed by ``record.key``.

    Records every call so tests can assert ordering, e.g. that a
    document's stale chunks were deleted before the new ones were written.
    """

    def __init__(self, name: str = "mock") -> None:
        self.name = name
        self.records: dict[str, RecordT] = {}
        self.calls: list[tuple[str, Any]] = []
        self._embedding = MockEmbeddingProvider()

    async def ensure_exists(self) -> None:
        self.calls.append(("ensure_exists", None))

    async def list_all(self, where: dict[str, Any] | None = None) -> list[RecordT]:
        self.calls.append(("list_all", where))
        return [record for record in self.records.values() if _matches(record, where)]

    async def upsert(self, records: list[RecordT]) -> int:
        self.calls.append(("upsert", [record.key for record in records]))
        for record in records:
            self.records[record.key] = record
        return len(records)

    async def delete_by_keys(self, keys: list[str]) -> None:
        self.calls.append(("delete_by_keys", list(keys)))
        for key in keys:
            self.records.pop(key, None)

    async def delete_where(self, where: dict[str, Any]) -> int:
        if not where:
            raise VectorStoreError(message="delete_where requires at least one filter")
        self.calls.append(("delete_where", dict(where)))
        doomed = [key for key, record in self.records.items() if _matches(record, where)]
        for key in doomed:
            del self.records[key]
        return len(doomed)

    async def search(
        self,
        query_text: str,
        top_k: int = 5,
        where: dict[str, Any] | None = None,
    ) -> list[RetrievedChunk]:
        query = await self._embedding.embed_single(query_text)
        scored: list[RetrievedChunk] = []
        for record in self.records.values():
            if not isinstance(record, IngestedChunk) or not _matches(record, where):
                continue
            vector = await self._embedding.embed_single(record.text)
            similarity = sum(a * b for a, b in zip(query, vector, strict=True))
            scored.append(
                RetrievedChunk(
                    chunk=record,
                    similarity_score=max(0.0, min(1.0, similarity)),
                    formatted_citation=f"{record.file_name}, p. {record.page_number}",
                )
            )
        scored.sort(key=lambda r: r.similarity_score, reverse=True)
        return scored[:top_k]

    async def count(self) -> int:
        return len(self.records)

    def get_provider_name(self) -> str:
        return f"mock-{self.name}"

    def is_available(self) -> bool:
        return True

    def call_names(self) -> list[str]:
        return [name for name, _ in self.calls]


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_embedding_provider() -> MockEmbeddingProvider:
    return MockEmbeddingProvider()


@pytest.fixture
def documents_collection() -> MockVectorCollection[IngestedDocument]:
    return MockVectorCollection("documents")


@pytest.fixture
def chunks_collection() -> MockVectorCollection[IngestedChunk]:
    return MockVectorCollection("chunks")


@pytest.fixture
def progress_tracker() -> ProgressTracker:
    return ProgressTracker()


@pytest.fixture
def progress_events(progress_tracker: ProgressTracker) -> list[FileProgress]:
    """Every event published on ``progress_tracker`` during the test, in order."""
    events: list[FileProgress] = []
    progress_tracker.register_listener(events.append)
    return events


@pytest.fixture
def docs_dir(tmp_path: Path) -> Path:
    """Empty document directory inside the test's tmp_path."""
    directory = tmp_path / "docs"
    directory.mkdir()
    return directory


@pytest.fixture
def write_docx() -> Callable[..., Path]:
    """Factory writing a real .docx with one paragraph per string."""
    import docx

    def _write(path: Path, *paragraphs: str, table: list[list[str]] | None = None) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        document = docx.Document()
        for paragraph in paragraphs:
            document.add_paragraph(paragraph)
        if table:
            grid = document.add_table(rows=len(table), cols=len(table[0]))
            for row_index, row in enumerate(table):
                for col_index, value in enumerate(row):
                    grid.cell(row_index, col_index).text = value
        document.save(str(path))
        return path

    return _write


@pytest.fixture
def write_pdf() -> Callable[..., Path]:
    """Factory writing a real PDF with one page per string (empty string = blank page)."""
    import fitz

    def _write(path: Path, *pages: str) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        doc = fitz.open()
        for page_text in pages:
            page = doc.new_page()
            if page_text:
                page.insert_text((72, 72), page_text, fontsize=11)
        doc.save(str(path))
        doc.close()
        return path

    return _write
