"""Vector store provider implementations.

ChromaDB is the sole vector store implementation.  Two collections live in
one persistent database under CHROMADB_PERSIST_DIR: ingested documents
(bookkeeping) and their chunks (embedded, searchable).

To swap ChromaDB for another vector database, implement IVectorCollection
and build it in ``doculens/main.py``.
"""

from doculens.providers.vector_store.chromadb_provider import (
    ChromaDBCollection,
    create_persistent_client,
)

__all__ = ["ChromaDBCollection", "create_persistent_client"]
