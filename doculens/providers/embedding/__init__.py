"""Embedding provider implementations.

FastEmbedEmbeddingProvider is the only implementation: ONNX-based, CPU
only, no API key.  To add another backend, implement IEmbeddingProvider
and select it in ``doculens/main.py``.
"""

from doculens.providers.embedding.fastembed_embedding_provider import FastEmbedEmbeddingProvider

__all__ = ["FastEmbedEmbeddingProvider"]
