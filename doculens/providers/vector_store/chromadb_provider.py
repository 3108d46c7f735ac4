"""ChromaDB vector store collection adapter.

Wraps one collection of a ``chromadb.PersistentClient`` to implement
:class:`IVectorCollection`.  Uses cosine distance for similarity search.
Fully local, no external service required.

Two record shapes are stored:

- **chunks**: ``text`` goes into Chroma's ``documents`` column and is
  embedded through the injected :class:`IEmbeddingProvider` on upsert.
- **documents**: bookkeeping rows with no text; they carry a constant
  placeholder vector because Chroma requires one per record.

Every other model field is stored as Chroma metadata, which is what the
``where`` filters (``source_id``, ``document_id``) match against.
"""

from __future__ import annotations

import os
from typing import Any

# Disable ChromaDB's PostHog telemetry before chromadb is imported.  The
# client Settings below repeat it for versions that ignore the env var.
os.environ["ANONYMIZED_TELEMETRY"] = "False"

import chromadb
import structlog

from doculens.interfaces.embedding_provider import IEmbeddingProvider
from doculens.interfaces.vector_store_provider import IVectorCollection, RecordT
from doculens.models.ingestion import IngestedChunk, RetrievedChunk
from doculens.utils.errors import DocuLensError, VectorStoreError

logger = structlog.get_logger(logger_name=__name__)

# Page size for paginated ``collection.get`` scans.
_PAGE_SIZE = 1000

# Stored with record types that have no text to embed.
_PLACEHOLDER_VECTOR = [1.0, 0.0]


class _NoopEmbeddingFunction(chromadb.EmbeddingFunction[list[str]]):
    """Keeps ChromaDB from loading its default embedding model.

    Embeddings are always computed by our own provider and passed in
    explicitly, so Chroma's built-in function is never called.
    """

    def __call__(self, input: list[str]) -> list[list[float]]:
        raise NotImplementedError(
            "DocuLens passes pre-computed embeddings; "
            "ChromaDB's built-in embedding should never be called."
        )

    def name(self) -> str:
        return "noop_precomputed"


def create_persistent_client(persist_directory: str) -> chromadb.ClientAPI:
    """Open (or create) the on-disk ChromaDB database shared by all collections."""
    return chromadb.PersistentClient(
        path=persist_directory,
        settings=chromadb.config.Settings(anonymized_telemetry=False),
    )


class ChromaDBCollection(IVectorCollection[RecordT]):
    """One ChromaDB collection holding records of a single pydantic model.

    Parameters
    ----------
    record_type:
        Model class stored in this collection.  It must have a ``key`` field.
    collection_name:
        Name of the Chroma collection.
    client:
        Shared Chroma client; one is created at *persist_directory* when
        omitted.
    embedding_provider:
        Required when *text_field* is set; embeds that field on upsert and
        the query on search.
    text_field:
        Model field stored as the Chroma document and embedded.  ``None``
        for bookkeeping collections.
    """

    def __init__(
        self,
        record_type: type[RecordT],
        collection_name: str,
        client: chromadb.ClientAPI | None = None,
        persist_directory: str = "./data/chromadb",
        embedding_provider: IEmbeddingProvider | None = None,
        text_field: str | None = None,
    ) -> None:
        if text_field is not None and embedding_provider is None:
            raise ValueError(f"Collection '{collection_name}' embeds '{text_field}' "
                             "but no embedding provider was given")
        self._record_type = record_type
        self._collection_name = collection_name
        self._client = client or create_persistent_client(persist_directory)
        self._embedding_provider = embedding_provider
        self._text_field = text_field
        self._collection: Any = None

    @property
    def collection_name(self) -> str:
        return self._collection_name

    # ------------------------------------------------------------------
    # IVectorCollection implementation
    # ------------------------------------------------------------------

    async def ensure_exists(self) -> None:
        self._get_collection()
        logger.info("chromadb_collection_ready", collection=self._collection_name)

    async def list_all(self, where: dict[str, Any] | None = None) -> list[RecordT]:
        """Return every matching record, paging through the collection."""
        try:
            collection = self._get_collection()
            where_clause = self._translate_filters(where)
            records: list[RecordT] = []
            offset = 0
            while True:
                kwargs: dict[str, Any] = {
                    "include": ["metadatas", "documents"],
                    "limit": _PAGE_SIZE,
                    "offset": offset,
                }
                if where_clause:
                    kwargs["where"] = where_clause
                page = collection.get(**kwargs)
                ids = page.get("ids") or []
                metadatas = page.get("metadatas") or [{}] * len(ids)
                documents = page.get("documents") or [None] * len(ids)
                for key, meta, text in zip(ids, metadatas, documents, strict=True):
                    records.append(self._to_record(key, meta, text))
                if len(ids) < _PAGE_SIZE:
                    break
                offset += _PAGE_SIZE
            return records
        except DocuLensError:
            raise
        except Exception as exc:
            raise VectorStoreError(
                message=f"ChromaDB list_all on '{self._collection_name}' failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def upsert(self, records: list[RecordT]) -> int:
        """Insert or replace *records*, embedding their text when configured."""
        if not records:
            return 0
        try:
            collection = self._get_collection()
            ids = [record.key for record in records]
            metadatas = [self._to_metadata(record) for record in records]
            kwargs: dict[str, Any] = {"ids": ids, "metadatas": metadatas}

            if self._text_field is not None:
                texts = [getattr(record, self._text_field) for record in records]
                kwargs["documents"] = texts
                kwargs["embeddings"] = await self._embedding_provider.embed(texts)
            else:
                kwargs["embeddings"] = [list(_PLACEHOLDER_VECTOR) for _ in records]

            collection.upsert(**kwargs)
            logger.debug(
                "chromadb_upsert",
                collection=self._collection_name,
                records=len(records),
            )
            return len(records)
        except DocuLensError:
            raise
        except Exception as exc:
            raise VectorStoreError(
                message=f"ChromaDB upsert into '{self._collection_name}' failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def delete_by_keys(self, keys: list[str]) -> None:
        if not keys:
            return
        try:
            self._get_collection().delete(ids=list(keys))
        except Exception as exc:
            raise VectorStoreError(
                message=f"ChromaDB delete from '{self._collection_name}' failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def delete_where(self, where: dict[str, Any]) -> int:
        """Delete all records matching *where* and return how many there were."""
        where_clause = self._translate_filters(where)
        if not where_clause:
            raise VectorStoreError(
                message="delete_where requires at least one filter",
                provider_name=self.get_provider_name(),
            )
        try:
            collection = self._get_collection()
            existing = collection.get(where=where_clause, include=[])
            ids = existing.get("ids") or []
            if ids:
                collection.delete(ids=ids)
            logger.debug(
                "chromadb_delete_where",
                collection=self._collection_name,
                where=where,
                deleted=len(ids),
            )
            return len(ids)
        except Exception as exc:
            raise VectorStoreError(
                message=f"ChromaDB delete_where on '{self._collection_name}' failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def search(
        self,
        query_text: str,
        top_k: int = 5,
        where: dict[str, Any] | None = None,
    ) -> list[RetrievedChunk]:
        """Cosine-similarity search over the chunk texts."""
        if self._text_field is None or self._record_type is not IngestedChunk:
            raise VectorStoreError(
                message=f"Collection '{self._collection_name}' does not support search",
                provider_name=self.get_provider_name(),
            )
        try:
            collection = self._get_collection()
            total = collection.count()
            if total == 0:
                return []

            query_embedding = await self._embedding_provider.embed_single(query_text)
            kwargs: dict[str, Any] = {
                "query_embeddings": [query_embedding],
                "n_results": min(top_k, total),
                "include": ["metadatas", "documents", "distances"],
            }
            where_clause = self._translate_filters(where)
            if where_clause:
                kwargs["where"] = where_clause

            results = collection.query(**kwargs)
            if not results["ids"] or not results["ids"][0]:
                return []

            ids = results["ids"][0]
            metadatas = results["metadatas"][0] if results["metadatas"] else [{}] * len(ids)
            documents = results["documents"][0] if results["documents"] else [""] * len(ids)
            distances = results["distances"][0] if results["distances"] else [0.0] * len(ids)

            retrieved: list[RetrievedChunk] = []
            for key, meta, text, distance in zip(ids, metadatas, documents, distances, strict=True):
                similarity = max(0.0, min(1.0, 1.0 - distance))
                chunk = self._to_record(key, meta, text)
                retrieved.append(
                    RetrievedChunk(
                        chunk=chunk,
                        similarity_score=similarity,
                        formatted_citation=self._format_citation(chunk),
                    )
                )

            logger.info(
                "chromadb_query",
                query_length=len(query_text),
                results_count=len(retrieved),
                top_score=retrieved[0].similarity_score if retrieved else 0.0,
            )
            return retrieved
        except DocuLensError:
            raise
        except Exception as exc:
            raise VectorStoreError(
                message=f"ChromaDB query failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    async def count(self) -> int:
        try:
            return self._get_collection().count()
        except Exception as exc:
            raise VectorStoreError(
                message=f"ChromaDB count on '{self._collection_name}' failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

    def get_provider_name(self) -> str:
        return "chromadb"

    def is_available(self) -> bool:
        """Return ``True`` if the ChromaDB collection is accessible."""
        try:
            self._get_collection().count()
            return True
        except Exception:
            return False

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _get_collection(self) -> Any:
        if self._collection is None:
            # A collection persisted with another embedding function rejects
            # ours; reopen it as persisted, embeddings are passed in anyway.
            try:
                self._collection = self._client.get_or_create_collection(
                    name=self._collection_name,
                    metadata={"hnsw:space": "cosine"},
                    embedding_function=_NoopEmbeddingFunction(),
                )
            except ValueError:
                logger.warning(
                    "chromadb_embedding_function_conflict",
                    collection=self._collection_name,
                )
                self._collection = self._client.get_or_create_collection(
                    name=self._collection_name,
                    metadata={"hnsw:space": "cosine"},
                )
        return self._collection

    def _to_metadata(self, record: RecordT) -> dict[str, str | int | float | bool]:
        """Every field except the key and the embedded text becomes metadata."""
        exclude = {"key"}
        if self._text_field is not None:
            exclude.add(self._text_field)
        return record.model_dump(mode="json", exclude=exclude)

    def _to_record(self, key: str, meta: dict[str, Any] | None, text: str | None) -> RecordT:
        data: dict[str, Any] = dict(meta or {})
        data["key"] = key
        if self._text_field is not None:
            data[self._text_field] = text or ""
        return self._record_type.model_validate(data)

    @staticmethod
    def _translate_filters(where: dict[str, Any] | None) -> dict[str, Any] | None:
        """Convert a flat ``{field: value}`` dict into a Chroma where clause.

        A single pair passes through unchanged; several pairs are combined
        with ``$and`` because Chroma rejects multi-key where dicts.
        """
        if not where:
            return None
        conditions = [{field: value} for field, value in where.items()]
        if len(conditions) == 1:
            return conditions[0]
        return {"$and": conditions}

    @staticmethod
    def _format_citation(chunk: IngestedChunk) -> str:
        """Build a human-readable citation string, e.g. ``handbook.pdf, p. 4``."""
        return f"{chunk.file_name}, p. {chunk.page_number}"
