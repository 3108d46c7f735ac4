"""DocuLens FastAPI application entry point.

Wires the vector store, ingestion pipeline and routes together via
dependency injection.  Configuration comes from ``.env`` and
``config/config.yaml``; structured logging is configured at import time.

Startup behaves like a configuration change of ``document_path``: when a
path is configured, the first ingestion runs before the app starts
serving.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

import structlog
import uvicorn
from fastapi import FastAPI, WebSocket

from doculens import __version__
from doculens.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from doculens.api.routes import router as api_router
from doculens.api.websocket import websocket_progress
from doculens.config.loader import load_config
from doculens.config.settings import Settings
from doculens.models.configuration import ConfigurationChangedEvent
from doculens.models.ingestion import IngestedChunk, IngestedDocument, IngestionOptions
from doculens.pipeline.progress_tracker import ProgressTracker
from doculens.providers.embedding.fastembed_embedding_provider import FastEmbedEmbeddingProvider
from doculens.providers.vector_store.chromadb_provider import (
    ChromaDBCollection,
    create_persistent_client,
)
from doculens.services.configuration_listener import ConfigurationChangeListener
from doculens.services.ingestion.data_ingestor import DataIngestor
from doculens.services.ingestion.ingestion_manager import IngestionManager
from doculens.utils.logging import configure_logging, get_logger

# ---------------------------------------------------------------------------
# Module-level settings & logging
# ---------------------------------------------------------------------------

settings = Settings()
config = load_config(settings=settings)

configure_logging(
    log_level=settings.log_level,
    json_output=(settings.app_env == "production"),
)
_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Full DI assembly
# ---------------------------------------------------------------------------


def _build_all(app_settings: Settings) -> dict[str, Any]:
    """Construct every provider and service instance for the application.

    Returns a flat dict of named components to be stored on ``app.state``.
    """
    client = create_persistent_client(app_settings.chromadb_persist_dir)
    embedding_provider = FastEmbedEmbeddingProvider(model_name=app_settings.embedding_model)

    documents_collection = ChromaDBCollection(
        IngestedDocument,
        collection_name=app_settings.chromadb_documents_collection,
        client=client,
    )
    chunks_collection = ChromaDBCollection(
        IngestedChunk,
        collection_name=app_settings.chromadb_chunks_collection,
        client=client,
        embedding_provider=embedding_provider,
        text_field="text",
    )

    options = IngestionOptions.from_settings(app_settings)
    progress_tracker = ProgressTracker()
    ingestor = DataIngestor(
        documents=documents_collection,
        chunks=chunks_collection,
        batch_size=options.batch_size,
        max_concurrency=options.max_concurrency,
    )
    ingestion_manager = IngestionManager(
        ingestor=ingestor,
        progress=progress_tracker,
        options=options,
        lock_timeout=app_settings.ingestion_lock_timeout,
    )
    configuration_listener = ConfigurationChangeListener(ingestion_manager)

    _logger.info(
        "components_built",
        persist_dir=app_settings.chromadb_persist_dir,
        embedding_provider=embedding_provider.get_provider_name(),
        documents_collection=documents_collection.collection_name,
        chunks_collection=chunks_collection.collection_name,
    )

    return {
        "settings": app_settings,
        "embedding_provider": embedding_provider,
        "documents_collection": documents_collection,
        "chunks_collection": chunks_collection,
        "progress_tracker": progress_tracker,
        "ingestor": ingestor,
        "ingestion_manager": ingestion_manager,
        "configuration_listener": configuration_listener,
    }


# ---------------------------------------------------------------------------
# Application lifespan (startup / shutdown)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def _lifespan(application: FastAPI):  # noqa: ANN201
    """Build components, make sure both collections exist, run the initial ingestion."""
    components = _build_all(settings)

    for key, value in components.items():
        setattr(application.state, key, value)

    await components["documents_collection"].ensure_exists()
    await components["chunks_collection"].ensure_exists()

    _logger.info(
        "app_startup",
        version=__version__,
        environment=settings.app_env,
        document_path=settings.document_path or None,
    )

    if settings.document_path:
        listener: ConfigurationChangeListener = components["configuration_listener"]
        await listener.on_configuration_changed(
            ConfigurationChangedEvent(
                changed_properties=frozenset({"document_path"}),
                document_path=settings.document_path,
                options=IngestionOptions.from_settings(settings),
            )
        )

    yield

    _logger.info("app_shutdown")


# ---------------------------------------------------------------------------
# FastAPI application factory
# ---------------------------------------------------------------------------


def create_app() -> FastAPI:
    """Build and configure the FastAPI application."""
    application = FastAPI(
        title="DocuLens API",
        version=__version__,
        description=(
            "Ingest a directory of Word, PDF and text documents into a local "
            "vector store so a chat assistant can retrieve and cite them."
        ),
        lifespan=_lifespan,
    )

    # -- Middleware (order matters: last added = first executed) --
    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(RequestLoggingMiddleware)
    configure_cors(application, allowed_origins=config.get("app", {}).get("cors_origins"))

    # -- API routes --
    application.include_router(api_router)

    # -- WebSocket --
    @application.websocket("/ws/ingestion")
    async def ws_ingestion(websocket: WebSocket) -> None:
        await websocket_progress(websocket)

    return application


app = create_app()

# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    uvicorn.run(
        "doculens.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=(settings.app_env == "development"),
    )
