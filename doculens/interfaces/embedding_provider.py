"""Abstract base class for text-embedding providers.

Defines the contract for turning chunk text into vectors.  The chunks
collection calls it at upsert time; the ingestion core never does.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


# Concrete implementations:
#   FastEmbedEmbeddingProvider  (ONNX, no PyTorch)
# Located in: doculens/providers/embedding/
class IEmbeddingProvider(ABC):
    """Contract for text-embedding services used by the chunks collection."""

    @abstractmethod
    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for a batch of texts.

        Parameters
        ----------
        texts:
            One or more text strings to embed.  Implementations handle
            batching internally if the backend has a per-call limit.

        Returns
        -------
        list[list[float]]
            Vectors corresponding positionally to *texts*, each of length
            :meth:`get_dimension`.

        Raises
        ------
        doculens.utils.errors.EmbeddingError
            If the model cannot be loaded or inference fails.
        """

    @abstractmethod
    async def embed_single(self, text: str) -> list[float]:
        """Generate an embedding vector for one string (e.g. a search query)."""

    @abstractmethod
    def get_dimension(self) -> int:
        """Return the dimensionality of the embedding vectors."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this embedding provider."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the provider's backend is installed and usable."""
