"""Incremental sync of a document source into the vector store.

One :meth:`DataIngestor.ingest` call reconciles the files a source holds
now with the document records the store holds for that source:

    1. list the source's IngestedDocument records
    2. ask the source what is new or modified, and what was deleted
    3. deleted   -> drop all of the document's chunks, then its record
    4. changed   -> chunk the file, drop the old chunks, write the new chunks
                    in batches, write the document record last

Per-document ordering matters, global ordering does not.  Extraction runs
before anything is deleted, so a file that fails to parse keeps its
previous chunks.  The document record is written after its chunks, so a
run interrupted half way leaves the old version token behind and the file
is picked up again next time.

Each changed document runs in its own failure boundary: one bad file is
logged and counted, the rest of the run goes on.  Failures outside those
boundaries (the store being unreachable while listing or deleting)
propagate to the caller.
"""

from __future__ import annotations

import asyncio
import time

import structlog

from doculens.interfaces.ingestion_source import IIngestionSource
from doculens.interfaces.vector_store_provider import IVectorCollection
from doculens.models.ingestion import (
    IngestedChunk,
    IngestedDocument,
    IngestionOptions,
    IngestionRunResult,
)
from doculens.utils.concurrency import throttled_gather

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_BATCH_SIZE = 100


class DataIngestor:
    """Reconciles an :class:`IIngestionSource` with the documents and chunks collections.

    All dependencies are injected, so tests can pass in-memory collections
    and a mock source.

    Parameters
    ----------
    documents:
        Collection of :class:`IngestedDocument` records.
    chunks:
        Collection of :class:`IngestedChunk` records (embeds on upsert).
    batch_size:
        Chunks per upsert call; bounds round trips for large documents.
    max_concurrency:
        Changed documents processed at the same time.
    """

    def __init__(
        self,
        documents: IVectorCollection[IngestedDocument],
        chunks: IVectorCollection[IngestedChunk],
        batch_size: int = _DEFAULT_BATCH_SIZE,
        max_concurrency: int = 1,
    ) -> None:
        self._documents = documents
        self._chunks = chunks
        self._batch_size = batch_size
        self._max_concurrency = max_concurrency

    async def ingest(
        self,
        source: IIngestionSource,
        options: IngestionOptions | None = None,
    ) -> IngestionRunResult:
        """Run one reconciliation pass over *source*.

        Parameters
        ----------
        source:
            The source to sync.
        options:
            Run snapshot; its ``batch_size`` and ``max_concurrency``
            override the constructor values for this run.

        Returns
        -------
        IngestionRunResult
            Counts of ingested, deleted and failed documents.
        """
        start = time.perf_counter()
        batch_size = options.batch_size if options else self._batch_size
        max_concurrency = options.max_concurrency if options else self._max_concurrency
        log = logger.bind(source_id=source.source_id)

        existing = await self._documents.list_all({"source_id": source.source_id})
        changed = await source.discover_changed(existing)
        deleted = await source.discover_deleted(existing)

        log.info(
            "ingestion_started",
            known_documents=len(existing),
            changed=len(changed),
            deleted=len(deleted),
        )

        for document in deleted:
            await self._delete_document(document)
            log.info("document_removed", document_id=document.document_id)

        semaphore = asyncio.Semaphore(max_concurrency)
        outcomes = await throttled_gather(
            [self._ingest_document(source, document, batch_size) for document in changed],
            semaphore=semaphore,
        )

        failed: list[str] = []
        chunks_written = 0
        for document, outcome in zip(changed, outcomes, strict=True):
            if isinstance(outcome, Exception):
                log.error(
                    "document_ingestion_failed",
                    document_id=document.document_id,
                    error=str(outcome),
                    error_type=type(outcome).__name__,
                )
                failed.append(document.document_id)
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                chunks_written += outcome

        result = IngestionRunResult(
            source_id=source.source_id,
            documents_ingested=len(changed) - len(failed),
            documents_deleted=len(deleted),
            documents_failed=failed,
            chunks_written=chunks_written,
            elapsed_ms=int((time.perf_counter() - start) * 1000),
        )
        log.info(
            "ingestion_complete",
            ingested=result.documents_ingested,
            deleted=result.documents_deleted,
            failed=len(result.documents_failed),
            chunks=result.chunks_written,
            elapsed_ms=result.elapsed_ms,
        )
        return result

    # ------------------------------------------------------------------
    # Per-document steps
    # ------------------------------------------------------------------

    async def _ingest_document(
        self,
        source: IIngestionSource,
        document: IngestedDocument,
        batch_size: int,
    ) -> int:
        """Replace one document's chunks and record; returns chunks written."""
        chunks = await source.chunks_for(document)

        removed = await self._chunks.delete_where(self._chunk_filter(document))
        if removed:
            logger.debug(
                "stale_chunks_removed",
                document_id=document.document_id,
                removed=removed,
            )

        written = 0
        for start in range(0, len(chunks), batch_size):
            written += await self._chunks.upsert(chunks[start : start + batch_size])

        await self._documents.upsert([document])
        return written

    async def _delete_document(self, document: IngestedDocument) -> None:
        await self._chunks.delete_where(self._chunk_filter(document))
        await self._documents.delete_by_keys([document.key])

    @staticmethod
    def _chunk_filter(document: IngestedDocument) -> dict[str, str]:
        return {"document_id": document.document_id, "source_id": document.source_id}
