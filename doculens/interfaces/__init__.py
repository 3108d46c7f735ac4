"""Abstract interfaces (ports) implemented by providers and services."""

from doculens.interfaces.embedding_provider import IEmbeddingProvider
from doculens.interfaces.ingestion_source import IIngestionSource
from doculens.interfaces.text_extractor import ITextExtractor
from doculens.interfaces.vector_store_provider import IVectorCollection

__all__ = [
    "IEmbeddingProvider",
    "IIngestionSource",
    "ITextExtractor",
    "IVectorCollection",
]
