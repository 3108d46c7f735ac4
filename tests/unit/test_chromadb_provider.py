"""Unit tests for the ChromaDB collection adapter.

Runs against a real PersistentClient in tmp_path with the deterministic
hash-based embedding provider from conftest.
"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest

from doculens.models.ingestion import IngestedChunk, IngestedDocument
from doculens.providers.vector_store.chromadb_provider import (
    ChromaDBCollection,
    create_persistent_client,
)
from doculens.utils.errors import VectorStoreError

_SOURCE = "DocumentDirectory_docs_AllDirectories"


def _document(document_id: str, version: str = "2024-01-01T00:00:00+00:00") -> IngestedDocument:
    return IngestedDocument(
        key=f"doc_{document_id}",
        source_id=_SOURCE,
        document_id=document_id,
        document_version=version,
    )


def _chunk(document_id: str, index: int, text: str, source_id: str = _SOURCE) -> IngestedChunk:
    return IngestedChunk(
        key=f"{document_id}_chunk_{index}",
        document_id=document_id,
        source_id=source_id,
        page_number=index + 1,
        text=text,
        file_name=f"{document_id}.pdf",
        file_path=f"/docs/{document_id}.pdf",
    )


@pytest.fixture()
def client(tmp_path: Path):  # noqa: ANN201
    return create_persistent_client(str(tmp_path / "chroma"))


@pytest.fixture()
def documents(client) -> ChromaDBCollection[IngestedDocument]:
    return ChromaDBCollection(IngestedDocument, collection_name="test_documents", client=client)


@pytest.fixture()
def chunks(client, mock_embedding_provider) -> ChromaDBCollection[IngestedChunk]:
    return ChromaDBCollection(
        IngestedChunk,
        collection_name="test_chunks",
        client=client,
        embedding_provider=mock_embedding_provider,
        text_field="text",
    )


class TestDocumentsCollection:
    @pytest.mark.asyncio
    async def test_upsert_and_list_round_trip(self, documents) -> None:
        records = [_document("txt_a"), _document("txt_b")]

        written = await documents.upsert(records)
        listed = await documents.list_all()

        assert written == 2
        assert sorted(listed, key=lambda d: d.key) == records

    @pytest.mark.asyncio
    async def test_upsert_replaces_by_key(self, documents) -> None:
        await documents.upsert([_document("txt_a", "v1")])
        await documents.upsert([_document("txt_a", "v2")])

        listed = await documents.list_all()

        assert [d.document_version for d in listed] == ["v2"]
        assert await documents.count() == 1

    @pytest.mark.asyncio
    async def test_list_all_filters_by_source(self, documents) -> None:
        other = _document("txt_b").model_copy(update={"source_id": "DocumentDirectory_x_TopDirectoryOnly"})
        await documents.upsert([_document("txt_a"), other])

        listed = await documents.list_all({"source_id": _SOURCE})

        assert [d.document_id for d in listed] == ["txt_a"]

    @pytest.mark.asyncio
    async def test_list_all_pages_through_collection(self, documents) -> None:
        await documents.upsert([_document(f"txt_{i}") for i in range(5)])

        with patch("doculens.providers.vector_store.chromadb_provider._PAGE_SIZE", 2):
            listed = await documents.list_all()

        assert len(listed) == 5

    @pytest.mark.asyncio
    async def test_delete_by_keys(self, documents) -> None:
        await documents.upsert([_document("txt_a"), _document("txt_b")])

        await documents.delete_by_keys(["doc_txt_a"])
        await documents.delete_by_keys([])

        assert [d.key for d in await documents.list_all()] == ["doc_txt_b"]

    @pytest.mark.asyncio
    async def test_search_not_supported(self, documents) -> None:
        with pytest.raises(VectorStoreError):
            await documents.search("anything")

    @pytest.mark.asyncio
    async def test_empty_upsert_is_noop(self, documents) -> None:
        assert await documents.upsert([]) == 0


class TestChunksCollection:
    @pytest.mark.asyncio
    async def test_text_round_trips_through_documents_column(self, chunks) -> None:
        chunk = _chunk("pdf_a", 0, "The quarterly report shows growth.")

        await chunks.upsert([chunk])

        assert await chunks.list_all() == [chunk]

    @pytest.mark.asyncio
    async def test_upsert_embeds_text(self, chunks, mock_embedding_provider) -> None:
        with patch.object(
            mock_embedding_provider, "embed", wraps=mock_embedding_provider.embed
        ) as spy:
            await chunks.upsert([_chunk("pdf_a", 0, "alpha"), _chunk("pdf_a", 1, "beta")])

        spy.assert_awaited_once_with(["alpha", "beta"])

    @pytest.mark.asyncio
    async def test_delete_where_matches_all_pairs(self, chunks) -> None:
        await chunks.upsert(
            [
                _chunk("pdf_a", 0, "one"),
                _chunk("pdf_a", 1, "two"),
                _chunk("pdf_b", 0, "three"),
            ]
        )
        await chunks.upsert(
            [_chunk("pdf_a", 5, "other source", source_id="DocumentDirectory_x_TopDirectoryOnly")]
        )

        removed = await chunks.delete_where({"document_id": "pdf_a", "source_id": _SOURCE})

        assert removed == 2
        remaining = sorted(c.key for c in await chunks.list_all())
        assert remaining == ["pdf_a_chunk_5", "pdf_b_chunk_0"]

    @pytest.mark.asyncio
    async def test_delete_where_without_matches(self, chunks) -> None:
        assert await chunks.delete_where({"document_id": "nothing"}) == 0

    @pytest.mark.asyncio
    async def test_delete_where_requires_filter(self, chunks) -> None:
        with pytest.raises(VectorStoreError):
            await chunks.delete_where({})

    @pytest.mark.asyncio
    async def test_search_returns_scored_citations(self, chunks) -> None:
        await chunks.upsert(
            [
                _chunk("pdf_a", 0, "Revenue grew in the third quarter."),
                _chunk("pdf_a", 3, "The office moved to Berlin."),
            ]
        )

        results = await chunks.search("The office moved to Berlin.", top_k=5)

        assert len(results) == 2
        assert results[0].chunk.key == "pdf_a_chunk_3"
        assert results[0].similarity_score > 0.99
        assert results[0].formatted_citation == "pdf_a.pdf, p. 4"
        assert all(0.0 <= r.similarity_score <= 1.0 for r in results)

    @pytest.mark.asyncio
    async def test_search_respects_top_k_and_filter(self, chunks) -> None:
        await chunks.upsert([_chunk("pdf_a", i, f"text {i}") for i in range(4)])
        await chunks.upsert([_chunk("pdf_b", 0, "text b")])

        assert len(await chunks.search("text", top_k=2)) == 2
        filtered = await chunks.search("text", top_k=10, where={"document_id": "pdf_b"})
        assert [r.chunk.document_id for r in filtered] == ["pdf_b"]

    @pytest.mark.asyncio
    async def test_search_on_empty_collection(self, chunks) -> None:
        assert await chunks.search("anything") == []


class TestConstruction:
    def test_text_field_requires_embedding_provider(self, client) -> None:
        with pytest.raises(ValueError):
            ChromaDBCollection(IngestedChunk, collection_name="c", client=client, text_field="text")

    @pytest.mark.asyncio
    async def test_availability_and_names(self, documents) -> None:
        await documents.ensure_exists()
        assert documents.is_available()
        assert documents.get_provider_name() == "chromadb"
        assert documents.collection_name == "test_documents"

    def test_translate_filters(self) -> None:
        translate = ChromaDBCollection._translate_filters
        assert translate(None) is None
        assert translate({}) is None
        assert translate({"source_id": "s"}) == {"source_id": "s"}
        assert translate({"document_id": "d", "source_id": "s"}) == {
            "$and": [{"document_id": "d"}, {"source_id": "s"}]
        }
