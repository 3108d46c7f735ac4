"""Unit tests for the fastembed embedding provider.

``fastembed.TextEmbedding`` is patched so no model is downloaded.
"""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from doculens.providers.embedding.fastembed_embedding_provider import (
    FastEmbedEmbeddingProvider,
)
from doculens.utils.errors import EmbeddingError


class _Vector:
    """Stand-in for the numpy arrays fastembed yields."""

    def __init__(self, values: list[float]) -> None:
        self._values = values

    def tolist(self) -> list[float]:
        return list(self._values)


def _fake_model() -> MagicMock:
    model = MagicMock()
    model.embed.side_effect = lambda batch: iter(_Vector([float(len(t)), 1.0]) for t in batch)
    return model


class TestFastEmbedEmbeddingProvider:
    def test_defaults(self) -> None:
        provider = FastEmbedEmbeddingProvider()
        assert provider.get_dimension() == 384
        assert provider.get_provider_name() == "fastembed_bge-small-en-v1.5"

    def test_known_model_dimension(self) -> None:
        provider = FastEmbedEmbeddingProvider(model_name="BAAI/bge-base-en-v1.5")
        assert provider.get_dimension() == 768

    @pytest.mark.asyncio
    async def test_embed_loads_model_once(self) -> None:
        model = _fake_model()
        with patch("fastembed.TextEmbedding", return_value=model) as factory:
            provider = FastEmbedEmbeddingProvider()
            first = await provider.embed(["ab", "abcd"])
            second = await provider.embed_single("abc")

        factory.assert_called_once_with(model_name="BAAI/bge-small-en-v1.5")
        assert first == [[2.0, 1.0], [4.0, 1.0]]
        assert second == [3.0, 1.0]

    @pytest.mark.asyncio
    async def test_large_inputs_are_batched(self) -> None:
        model = _fake_model()
        with patch("fastembed.TextEmbedding", return_value=model):
            vectors = await FastEmbedEmbeddingProvider().embed(["x"] * 130)

        assert len(vectors) == 130
        assert [len(call.args[0]) for call in model.embed.call_args_list] == [64, 64, 2]

    @pytest.mark.asyncio
    async def test_empty_input_skips_model(self) -> None:
        with patch("fastembed.TextEmbedding") as factory:
            assert await FastEmbedEmbeddingProvider().embed([]) == []
        factory.assert_not_called()

    @pytest.mark.asyncio
    async def test_load_failure_raises_embedding_error(self) -> None:
        with patch("fastembed.TextEmbedding", side_effect=OSError("no network")):
            with pytest.raises(EmbeddingError, match="Failed to load fastembed model"):
                await FastEmbedEmbeddingProvider().embed(["text"])

    @pytest.mark.asyncio
    async def test_embed_failure_raises_embedding_error(self) -> None:
        model = MagicMock()
        model.embed.side_effect = RuntimeError("onnx crashed")
        with patch("fastembed.TextEmbedding", return_value=model):
            with pytest.raises(EmbeddingError) as exc_info:
                await FastEmbedEmbeddingProvider().embed(["text"])

        assert exc_info.value.provider_name == "fastembed_bge-small-en-v1.5"
