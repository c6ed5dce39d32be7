"""Unit tests for the OpenAI embedding provider adapter."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest

from src.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from src.utils.errors import ConfigurationError, ProviderError, RateLimitError

_REQUEST = httpx.Request("POST", "https://api.openai.com/v1/embeddings")


def _response(vectors: list[list[float]], *, reverse: bool = False) -> MagicMock:
    items = [MagicMock(index=i, embedding=v) for i, v in enumerate(vectors)]
    if reverse:
        items.reverse()
    response = MagicMock()
    response.data = items
    response.usage = MagicMock(total_tokens=10)
    return response


def _echo_client() -> MagicMock:
    """Client whose embeddings.create returns one [len(text), 1.0] vector per input."""

    async def _create(input: list[str], model: str) -> MagicMock:
        return _response([[float(len(text)), 1.0] for text in input])

    client = MagicMock()
    client.embeddings.create = AsyncMock(side_effect=_create)
    return client


def _rate_limit_error() -> openai.RateLimitError:
    return openai.RateLimitError(
        "rate limited",
        response=httpx.Response(429, request=_REQUEST),
        body=None,
    )


class TestOpenAIEmbeddingProvider:
    def test_provider_name(self, settings_factory) -> None:
        provider = OpenAIEmbeddingProvider(settings_factory())
        assert provider.get_provider_name() == "openai_embedding"

    def test_provider_name_custom_endpoint(self, settings_factory) -> None:
        provider = OpenAIEmbeddingProvider(
            settings_factory(openai_base_url="http://localhost:9000/v1")
        )
        assert provider.get_provider_name() == "openai-compatible_embedding"

    def test_availability_follows_key(self, settings_factory) -> None:
        assert OpenAIEmbeddingProvider(settings_factory()).is_available() is True
        assert OpenAIEmbeddingProvider(settings_factory(openai_api_key="")).is_available() is False

    def test_known_model_dimension(self, settings_factory) -> None:
        provider = OpenAIEmbeddingProvider(settings_factory())
        assert provider.get_dimension() == 1536

    @pytest.mark.asyncio
    async def test_embed_without_key_raises_configuration_error(self, settings_factory) -> None:
        provider = OpenAIEmbeddingProvider(settings_factory(openai_api_key=""))
        with pytest.raises(ConfigurationError):
            await provider.embed(["hello"])

    @pytest.mark.asyncio
    async def test_empty_input_makes_no_call(self, settings_factory) -> None:
        client = _echo_client()
        provider = OpenAIEmbeddingProvider(settings_factory(), client=client)
        assert await provider.embed([]) == []
        client.embeddings.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_batches_preserve_input_order(self, settings_factory) -> None:
        client = _echo_client()
        provider = OpenAIEmbeddingProvider(
            settings_factory(
                openai_embedding_model="test-model",
                embedding_batch_size=2,
                embedding_concurrency=2,
            ),
            client=client,
        )
        texts = ["a", "bb", "ccc", "dddd", "eeeee"]

        vectors = await provider.embed(texts)

        assert [v[0] for v in vectors] == [1.0, 2.0, 3.0, 4.0, 5.0]
        assert client.embeddings.create.await_count == 3
        assert provider.get_dimension() == 2

    @pytest.mark.asyncio
    async def test_items_reordered_by_index(self, settings_factory) -> None:
        client = MagicMock()
        client.embeddings.create = AsyncMock(
            return_value=_response([[1.0, 0.0], [0.0, 1.0]], reverse=True)
        )
        provider = OpenAIEmbeddingProvider(
            settings_factory(openai_embedding_model="test-model"), client=client
        )

        vectors = await provider.embed(["first", "second"])

        assert vectors == [[1.0, 0.0], [0.0, 1.0]]

    @pytest.mark.asyncio
    async def test_embed_single(self, settings_factory) -> None:
        provider = OpenAIEmbeddingProvider(
            settings_factory(openai_embedding_model="test-model"), client=_echo_client()
        )
        assert await provider.embed_single("abc") == [3.0, 1.0]

    @pytest.mark.asyncio
    async def test_dimension_mismatch_raises(self, settings_factory) -> None:
        client = MagicMock()
        client.embeddings.create = AsyncMock(return_value=_response([[0.1, 0.2, 0.3]]))
        provider = OpenAIEmbeddingProvider(settings_factory(), client=client)

        with pytest.raises(ProviderError, match="does not match"):
            await provider.embed(["x"])

    @pytest.mark.asyncio
    async def test_rate_limit_retried_then_succeeds(self, settings_factory) -> None:
        client = MagicMock()
        client.embeddings.create = AsyncMock(
            side_effect=[_rate_limit_error(), _response([[0.5, 0.5]])]
        )
        provider = OpenAIEmbeddingProvider(
            settings_factory(openai_embedding_model="test-model"), client=client
        )

        assert await provider.embed(["x"]) == [[0.5, 0.5]]
        assert client.embeddings.create.await_count == 2

    @pytest.mark.asyncio
    async def test_rate_limit_exhausted(self, settings_factory) -> None:
        client = MagicMock()
        client.embeddings.create = AsyncMock(side_effect=_rate_limit_error())
        provider = OpenAIEmbeddingProvider(
            settings_factory(provider_max_retries=2), client=client
        )

        with pytest.raises(RateLimitError):
            await provider.embed(["x"])
        assert client.embeddings.create.await_count == 2

    @pytest.mark.asyncio
    async def test_timeout_becomes_provider_error(self, settings_factory) -> None:
        client = MagicMock()
        client.embeddings.create = AsyncMock(side_effect=openai.APITimeoutError(request=_REQUEST))
        provider = OpenAIEmbeddingProvider(settings_factory(), client=client)

        with pytest.raises(ProviderError, match="timed out") as exc_info:
            await provider.embed(["x"])
        assert not isinstance(exc_info.value, RateLimitError)
        assert exc_info.value.provider_name == "openai_embedding"
