"""Answer generation and page OCR through the ``openai`` SDK.

Setting ``OPENAI_BASE_URL`` points the client at an OpenAI-compatible
server instead (TogetherAI, Groq, a local proxy). Vision is only assumed
for the default endpoint or an explicit ``OPENAI_VISION_MODEL``.
"""

from __future__ import annotations

import base64

import openai
import structlog

from src.config.settings import Settings
from src.interfaces.llm_provider import ILLMProvider
from src.models.document import ConversationTurn
from src.utils.concurrency import retry_on_rate_limit
from src.utils.errors import ConfigurationError, ProviderError

logger = structlog.get_logger(logger_name=__name__)


def detect_media_type(image_bytes: bytes) -> str:
    """Guess the image MIME type from its leading bytes (PNG, WEBP or JPEG).
    JPEG starts with: FF D8
    """
    if image_bytes[:8] == b"\x89PNG\r\n\x1a\n":
        return "image/png"
    if image_bytes[:4] == b"RIFF" and image_bytes[8:12] == b"WEBP":
        return "image/webp"
    if image_bytes[:2] == b"\xff\xd8":
        return "image/jpeg"
    return "image/png"  # rendered PDF pages are PNG


class OpenAILLMProvider(ILLMProvider):
    """Chat-completions client used for grounded answers and vision OCR.

    Uses ``gpt-4o-mini`` for answers by default and the same model for
    vision unless ``openai_vision_model`` overrides it.

    Message layout sent to the chat API::

        system    -> instructions + retrieved context
        user/assistant ... -> prior conversation turns, oldest first
        user      -> the question
    """

    def __init__(self, settings: Settings, client: openai.AsyncOpenAI | None = None) -> None:
        self._settings = settings
        self._api_key = settings.openai_api_key

        if client is not None:
            self._client: openai.AsyncOpenAI | None = client
        elif self._api_key:
            client_kwargs: dict = {
                "api_key": self._api_key,
                "timeout": openai.Timeout(settings.provider_timeout_seconds, connect=5.0),
                "max_retries": 0,
            }
            if settings.openai_base_url:
                client_kwargs["base_url"] = settings.openai_base_url
            self._client = openai.AsyncOpenAI(**client_kwargs)
        else:
            self._client = None

        self._text_model = settings.openai_text_model or "gpt-4o-mini"
        self._vision_model = settings.openai_vision_model or self._text_model
        # Custom endpoints rarely serve vision models unless one is named.
        self._has_vision = bool(settings.openai_vision_model) or not settings.openai_base_url
        self._provider_label = (
            "openai-compatible" if settings.openai_base_url else "openai"
        )

    # ------------------------------------------------------------------
    # ILLMProvider implementation
    # ------------------------------------------------------------------

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.7,
        max_tokens: int = 1000,
        history: list[ConversationTurn] | None = None,
    ) -> str:
        """Generate a text completion via the OpenAI-compatible chat API."""
        client = self._require_client()

        messages: list[dict] = [{"role": "system", "content": system_prompt}]
        for turn in history or []:
            messages.append({"role": turn.role, "content": turn.content})
        messages.append({"role": "user", "content": user_prompt})

        async def _call():
            return await client.chat.completions.create(
                model=self._text_model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
            )

        response = await self._send(_call, "completion")
        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise ProviderError(
                message=f"{self._provider_label} returned empty response",
                provider_name=self.get_provider_name(),
            )
        logger.info(
            "openai_completion",
            model=self._text_model,
            provider=self._provider_label,
            history_turns=len(history or []),
            tokens=response.usage.total_tokens if response.usage else None,
        )
        return content

    async def vision_extract(self, image_bytes: bytes, prompt: str) -> str:
        """Read text from an image using the configured vision model."""
        if not self._has_vision:
            raise NotImplementedError(
                f"Vision not supported by {self._provider_label} configuration"
            )
        client = self._require_client()
        b64 = base64.b64encode(image_bytes).decode("utf-8")
        media_type = detect_media_type(image_bytes)

        async def _call():
            return await client.chat.completions.create(
                model=self._vision_model,
                messages=[
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": prompt},
                            {
                                "type": "image_url",
                                "image_url": {"url": f"data:{media_type};base64,{b64}"},
                            },
                        ],
                    }
                ],
                max_tokens=4000,
            )

        response = await self._send(_call, "vision")
        content = response.choices[0].message.content if response.choices else None
        if content is None:
            raise ProviderError(
                message=f"{self._provider_label} vision returned empty response",
                provider_name=self.get_provider_name(),
            )
        logger.info(
            "openai_vision_extract",
            model=self._vision_model,
            provider=self._provider_label,
            tokens=response.usage.total_tokens if response.usage else None,
        )
        return content

    def supports_vision(self) -> bool:
        return self._has_vision

    def is_available(self) -> bool:
        """Configured means a key is present; use validate_credentials to test it."""
        return bool(self._api_key)

    async def validate_credentials(self) -> bool:
        """List models to verify the API key without incurring inference cost."""
        if self._client is None:
            return False
        try:
            await self._client.models.list()
            return True
        except openai.APIError:
            return False

    def get_provider_name(self) -> str:
        """``openai-compatible`` when a base URL is set, else ``openai``."""
        return self._provider_label

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_client(self) -> openai.AsyncOpenAI:
        if self._client is None:
            raise ConfigurationError(
                message="OPENAI_API_KEY is not configured",
                provider_name=self.get_provider_name(),
            )
        return self._client

    async def _send(self, call, kind: str):
        try:
            return await retry_on_rate_limit(
                call,
                rate_limit_errors=(openai.RateLimitError,),
                max_retries=self._settings.provider_max_retries,
                backoff=self._settings.provider_retry_backoff,
                provider_name=self.get_provider_name(),
                logger=logger,
            )
        except openai.APITimeoutError as exc:
            raise ProviderError(
                message=(
                    f"{self._provider_label} {kind} timed out after "
                    f"{self._settings.provider_timeout_seconds}s"
                ),
                provider_name=self.get_provider_name(),
            ) from exc
        except openai.APIError as exc:
            raise ProviderError(
                message=f"{self._provider_label} {kind} API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
