"""OpenAI-compatible embedding provider adapter.

Wraps the ``openai`` async client to implement :class:`IEmbeddingProvider`.
Supports both real OpenAI and OpenAI-compatible providers (TogetherAI,
Fireworks, a local proxy) via custom ``base_url`` and model name settings.
The same model embeds chunks and questions.
"""

from __future__ import annotations

import openai
import structlog

from src.config.settings import Settings
from src.interfaces.embedding_provider import IEmbeddingProvider
from src.utils.concurrency import retry_on_rate_limit, throttled_gather
from src.utils.errors import ConfigurationError, ProviderError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_MODEL = "text-embedding-3-small"

# Hard per-request input cap of the OpenAI embeddings endpoint.
_OPENAI_BATCH_LIMIT = 2048

# Known embedding model dimensions.
_MODEL_DIMENSIONS: dict[str, int] = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
    "BAAI/bge-base-en-v1.5": 768,
    "BAAI/bge-large-en-v1.5": 1024,
}


class OpenAIEmbeddingProvider(IEmbeddingProvider):
    """Embedding provider backed by an OpenAI-compatible embeddings API.

    Uses ``text-embedding-3-small`` (1536 dims) by default.  Inputs are split
    into batches of ``embedding_batch_size`` and at most
    ``embedding_concurrency`` batches are in flight at once; the returned
    vectors keep input order.  The SDK's own retries are disabled so rate
    limits go through :func:`retry_on_rate_limit` with the configured
    linear backoff.
    """

    def __init__(self, settings: Settings, client: openai.AsyncOpenAI | None = None) -> None:
        self._settings = settings
        self._api_key = settings.openai_api_key
        self._model = settings.openai_embedding_model or _DEFAULT_MODEL
        self._dimension = _MODEL_DIMENSIONS.get(self._model, 0)
        self._batch_size = min(settings.embedding_batch_size, _OPENAI_BATCH_LIMIT)
        self._concurrency = settings.embedding_concurrency
        self._provider_label = (
            "openai-compatible_embedding" if settings.openai_base_url else "openai_embedding"
        )

        if client is not None:
            self._client: openai.AsyncOpenAI | None = client
        elif self._api_key:
            client_kwargs: dict = {
                "api_key": self._api_key,
                "timeout": settings.provider_timeout_seconds,
                "max_retries": 0,
            }
            if settings.openai_base_url:
                client_kwargs["base_url"] = settings.openai_base_url
            self._client = openai.AsyncOpenAI(**client_kwargs)
        else:
            self._client = None

    # ------------------------------------------------------------------
    # IEmbeddingProvider implementation
    # ------------------------------------------------------------------

    async def embed(self, texts: list[str]) -> list[list[float]]:
        """Generate embedding vectors for *texts*, preserving order."""
        if not texts:
            return []
        if self._client is None:
            raise ConfigurationError(
                message="OPENAI_API_KEY is not configured",
                provider_name=self.get_provider_name(),
            )

        batches = [
            texts[start : start + self._batch_size]
            for start in range(0, len(texts), self._batch_size)
        ]
        results = await throttled_gather(
            [self._embed_batch(batch) for batch in batches],
            limit=self._concurrency,
        )

        embeddings: list[list[float]] = []
        for batch_vectors in results:
            embeddings.extend(batch_vectors)

        if len(embeddings) != len(texts):
            raise ProviderError(
                message=(
                    f"Expected {len(texts)} embeddings, received {len(embeddings)}"
                ),
                provider_name=self.get_provider_name(),
            )
        return embeddings

    async def embed_single(self, text: str) -> list[float]:
        """Generate an embedding vector for a single text string."""
        result = await self.embed([text])
        return result[0]

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return self._provider_label

    def is_available(self) -> bool:
        """Return ``True`` if an API key is configured."""
        return bool(self._api_key)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _embed_batch(self, batch: list[str]) -> list[list[float]]:
        assert self._client is not None
        client = self._client

        async def _call() -> openai.types.CreateEmbeddingResponse:
            return await client.embeddings.create(input=batch, model=self._model)

        try:
            response = await retry_on_rate_limit(
                _call,
                rate_limit_errors=(openai.RateLimitError,),
                max_retries=self._settings.provider_max_retries,
                backoff=self._settings.provider_retry_backoff,
                provider_name=self.get_provider_name(),
                logger=logger,
            )
        except openai.APITimeoutError as exc:
            raise ProviderError(
                message=(
                    f"{self._provider_label} timed out after "
                    f"{self._settings.provider_timeout_seconds}s"
                ),
                provider_name=self.get_provider_name(),
            ) from exc
        except openai.APIError as exc:
            raise ProviderError(
                message=f"{self._provider_label} API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        # The API may return items out of order; ``index`` is authoritative.
        items = sorted(response.data, key=lambda item: item.index)
        vectors = [list(item.embedding) for item in items]
        for vector in vectors:
            if self._dimension == 0:
                self._dimension = len(vector)
            elif len(vector) != self._dimension:
                raise ProviderError(
                    message=(
                        f"Embedding dimension {len(vector)} does not match "
                        f"expected {self._dimension}"
                    ),
                    provider_name=self.get_provider_name(),
                )

        logger.info(
            "openai_embedding_batch",
            model=self._model,
            provider=self._provider_label,
            batch_size=len(batch),
            tokens=response.usage.total_tokens if response.usage else None,
        )
        return vectors
