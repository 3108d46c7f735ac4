"""Standalone CLI for running ingestion and inspecting the vector store.

Usage::

    python -m doculens.cli run --path /srv/docs
    python -m doculens.cli run --path /srv/docs --top-level-only --chunk-size 800
    python -m doculens.cli search "quarterly revenue guidance" --top-k 3
    python -m doculens.cli stats

Settings (persist directory, collection names, chunk sizes) come from the
environment / ``.env`` exactly as for the API server, so both share one
ChromaDB database.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from typing import Any

from doculens.config.settings import Settings
from doculens.models.ingestion import (
    FileProgress,
    IngestedChunk,
    IngestedDocument,
    IngestionOptions,
    IngestionStatus,
)
from doculens.utils.logging import configure_logging


def _build_components(app_settings: Settings) -> dict[str, Any]:
    """Construct the collections and ingestion services the commands need.

    Imports are deferred so ``--help`` does not load chromadb or fastembed.
    """
    from doculens.pipeline.progress_tracker import ProgressTracker
    from doculens.providers.embedding.fastembed_embedding_provider import (
        FastEmbedEmbeddingProvider,
    )
    from doculens.providers.vector_store.chromadb_provider import (
        ChromaDBCollection,
        create_persistent_client,
    )
    from doculens.services.ingestion.data_ingestor import DataIngestor
    from doculens.services.ingestion.ingestion_manager import IngestionManager

    client = create_persistent_client(app_settings.chromadb_persist_dir)
    embedding_provider = FastEmbedEmbeddingProvider(model_name=app_settings.embedding_model)
    documents = ChromaDBCollection(
        IngestedDocument,
        collection_name=app_settings.chromadb_documents_collection,
        client=client,
    )
    chunks = ChromaDBCollection(
        IngestedChunk,
        collection_name=app_settings.chromadb_chunks_collection,
        client=client,
        embedding_provider=embedding_provider,
        text_field="text",
    )
    progress = ProgressTracker()
    manager = IngestionManager(
        ingestor=DataIngestor(documents=documents, chunks=chunks),
        progress=progress,
        options=IngestionOptions.from_settings(app_settings),
        lock_timeout=app_settings.ingestion_lock_timeout,
    )
    return {
        "documents": documents,
        "chunks": chunks,
        "progress": progress,
        "manager": manager,
    }


# ---------------------------------------------------------------------------
# Output helpers
# ---------------------------------------------------------------------------


def _print_progress(event: FileProgress) -> None:
    """Console listener registered with the progress tracker during ``run``."""
    line = f"  [{event.status.value:<9}] {event.file_name}"
    if event.elapsed_ms is not None and event.status is not IngestionStatus.INGESTING:
        line += f" ({event.elapsed_ms} ms)"
    if event.error:
        line += f" - {event.error}"
    print(line)


def _options_from_args(args: argparse.Namespace, app_settings: Settings) -> IngestionOptions:
    options = IngestionOptions.from_settings(app_settings)
    updates: dict[str, Any] = {}
    if args.top_level_only:
        updates["recursive"] = False
    if args.chunk_size is not None:
        updates["chunk_size"] = args.chunk_size
    if args.chunk_overlap is not None:
        updates["chunk_overlap"] = args.chunk_overlap
    if not updates:
        return options
    # Re-validate so the field constraints apply to CLI overrides too.
    return IngestionOptions(**{**options.model_dump(), **updates})


# ---------------------------------------------------------------------------
# Subcommand handlers
# ---------------------------------------------------------------------------


async def _handle_run(
    args: argparse.Namespace,
    app_settings: Settings,
    components: dict[str, Any],
) -> int:
    """Ingest a directory once and print per-file progress."""
    document_path = args.path or app_settings.document_path
    if not document_path:
        print("Error: no --path given and DOCUMENT_PATH is not set.", file=sys.stderr)
        return 1

    options = _options_from_args(args, app_settings)
    print(f"Ingesting directory: {document_path}")
    print(
        f"  Recursive: {options.recursive} | Chunk size: {options.chunk_size}"
        f" | Overlap: {options.chunk_overlap}"
    )

    await components["documents"].ensure_exists()
    await components["chunks"].ensure_exists()

    progress = components["progress"]
    progress.register_listener(_print_progress)
    try:
        result = await components["manager"].trigger_ingestion(document_path, options)
    finally:
        progress.unregister_listener(_print_progress)

    if result is None:
        print("Nothing ingested: directory not found or another run is active.", file=sys.stderr)
        return 1

    print("\nIngestion complete:")
    print(f"  Source ID:          {result.source_id}")
    print(f"  Documents ingested: {result.documents_ingested}")
    print(f"  Documents deleted:  {result.documents_deleted}")
    print(f"  Chunks written:     {result.chunks_written}")
    print(f"  Time:               {result.elapsed_ms / 1000:.2f}s")
    if result.documents_failed:
        print(f"  Failed:             {len(result.documents_failed)}")
        for document_id in result.documents_failed:
            print(f"    {document_id}")
        return 2
    return 0


async def _handle_search(args: argparse.Namespace, components: dict[str, Any]) -> int:
    """Run a similarity search against the chunks collection."""
    results = await components["chunks"].search(args.query, top_k=args.top_k)
    if not results:
        print("No matching chunks.")
        return 0

    for rank, retrieved in enumerate(results, start=1):
        print(f"{rank}. {retrieved.formatted_citation}  (score {retrieved.similarity_score:.3f})")
        snippet = " ".join(retrieved.chunk.text.split())
        print(f"   {snippet[:200]}")
    return 0


async def _handle_stats(components: dict[str, Any]) -> int:
    """Display record counts of both collections."""
    documents = components["documents"]
    chunks = components["chunks"]
    if not documents.is_available():
        print("Vector store not available.")
        return 1

    print("Vector Store Statistics")
    print("=" * 40)
    print(f"  Documents ({documents.collection_name}): {await documents.count()}")
    print(f"  Chunks    ({chunks.collection_name}): {await chunks.count()}")
    return 0


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the ingestion CLI."""
    parser = argparse.ArgumentParser(
        prog="python -m doculens.cli",
        description="Ingest document directories into the DocuLens vector store.",
    )
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # -- run --
    run_parser = subparsers.add_parser("run", help="Ingest a document directory once")
    run_parser.add_argument("--path", default=None, help="Directory (default: DOCUMENT_PATH)")
    run_parser.add_argument(
        "--top-level-only",
        action="store_true",
        dest="top_level_only",
        help="Do not descend into subdirectories",
    )
    run_parser.add_argument("--chunk-size", type=int, default=None, dest="chunk_size")
    run_parser.add_argument("--chunk-overlap", type=int, default=None, dest="chunk_overlap")

    # -- search --
    search_parser = subparsers.add_parser("search", help="Search the ingested chunks")
    search_parser.add_argument("query", help="Free-text query")
    search_parser.add_argument("--top-k", type=int, default=5, dest="top_k")

    # -- stats --
    subparsers.add_parser("stats", help="Show collection record counts")

    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> None:
    """CLI entry point: parse the subcommand and dispatch to its handler."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    app_settings = Settings()
    configure_logging(log_level=app_settings.log_level)
    components = _build_components(app_settings)

    if args.command == "run":
        exit_code = asyncio.run(_handle_run(args, app_settings, components))
    elif args.command == "search":
        exit_code = asyncio.run(_handle_search(args, components))
    elif args.command == "stats":
        exit_code = asyncio.run(_handle_stats(components))
    else:
        parser.print_help()
        exit_code = 1

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
