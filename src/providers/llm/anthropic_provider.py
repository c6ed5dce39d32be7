"""Answer generation and page OCR through the ``anthropic`` SDK.

Key differences from the OpenAI adapter:
    - Calls go through the Messages API
    - The grounded-context prompt travels in ``system``, outside ``messages``
    - The message list must open with a user turn
    - Vision uses an "image" content block with a base64 source
    - Response content is a list of blocks; text blocks are joined
"""

from __future__ import annotations

import base64

import anthropic
import structlog

from src.config.settings import Settings
from src.interfaces.llm_provider import ILLMProvider
from src.models.document import ConversationTurn
from src.providers.llm.openai_provider import detect_media_type
from src.utils.concurrency import retry_on_rate_limit
from src.utils.errors import ConfigurationError, ProviderError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_MODEL = "claude-sonnet-4-20250514"


class AnthropicLLMProvider(ILLMProvider):
    """Claude-backed answer generator, preferred when its key is configured.

    One model serves both text and vision.  Selected over OpenAI for
    completions whenever ``ANTHROPIC_API_KEY`` is set.
    """

    def __init__(
        self, settings: Settings, client: anthropic.AsyncAnthropic | None = None
    ) -> None:
        self._settings = settings
        self._api_key = settings.anthropic_api_key
        if client is not None:
            self._client: anthropic.AsyncAnthropic | None = client
        elif self._api_key:
            self._client = anthropic.AsyncAnthropic(
                api_key=self._api_key,
                timeout=settings.provider_timeout_seconds,
                max_retries=0,
            )
        else:
            self._client = None
        self._model = settings.anthropic_model or _DEFAULT_MODEL

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
        """Generate a text completion via the Anthropic Messages API."""
        client = self._require_client()

        turns = list(history or [])
        while turns and turns[0].role != "user":
            turns.pop(0)
        messages: list[dict] = [{"role": t.role, "content": t.content} for t in turns]
        messages.append({"role": "user", "content": user_prompt})

        async def _call():
            return await client.messages.create(
                model=self._model,
                max_tokens=max_tokens,
                system=system_prompt,
                messages=messages,
                temperature=temperature,
            )

        response = await self._send(_call, "completion")
        result = self._join_text(response)
        logger.info(
            "anthropic_completion",
            model=self._model,
            history_turns=len(turns),
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
        )
        return result

    async def vision_extract(self, image_bytes: bytes, prompt: str) -> str:
        """Read text from an image using Claude's vision capability."""
        client = self._require_client()
        b64 = base64.b64encode(image_bytes).decode("utf-8")
        media_type = detect_media_type(image_bytes)

        async def _call():
            return await client.messages.create(
                model=self._model,
                max_tokens=4000,
                messages=[
                    {
                        "role": "user",
                        "content": [
                            {
                                "type": "image",
                                "source": {
                                    "type": "base64",
                                    "media_type": media_type,
                                    "data": b64,
                                },
                            },
                            {"type": "text", "text": prompt},
                        ],
                    }
                ],
            )

        response = await self._send(_call, "vision")
        result = self._join_text(response)
        logger.info(
            "anthropic_vision_extract",
            model=self._model,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
        )
        return result

    def supports_vision(self) -> bool:
        return True

    def is_available(self) -> bool:
        """Configured means ``ANTHROPIC_API_KEY`` is non-empty."""
        return bool(self._api_key)

    async def validate_credentials(self) -> bool:
        """Send a one-token request; any API error means the key is unusable."""
        if self._client is None:
            return False
        try:
            await self._client.messages.create(
                model=self._model,
                max_tokens=10,
                messages=[{"role": "user", "content": "hi"}],
            )
            return True
        except anthropic.APIError:
            return False

    def get_provider_name(self) -> str:
        return "anthropic"

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_client(self) -> anthropic.AsyncAnthropic:
        if self._client is None:
            raise ConfigurationError(
                message="ANTHROPIC_API_KEY is not configured",
                provider_name=self.get_provider_name(),
            )
        return self._client

    def _join_text(self, response) -> str:
        text_blocks = [block.text for block in response.content if block.type == "text"]
        if not text_blocks:
            raise ProviderError(
                message="Anthropic returned no text content",
                provider_name=self.get_provider_name(),
            )
        return "\n".join(text_blocks)

    async def _send(self, call, kind: str):
        try:
            return await retry_on_rate_limit(
                call,
                rate_limit_errors=(anthropic.RateLimitError,),
                max_retries=self._settings.provider_max_retries,
                backoff=self._settings.provider_retry_backoff,
                provider_name=self.get_provider_name(),
                logger=logger,
            )
        except anthropic.APITimeoutError as exc:
            raise ProviderError(
                message=(
                    f"Anthropic {kind} timed out after "
                    f"{self._settings.provider_timeout_seconds}s"
                ),
                provider_name=self.get_provider_name(),
            ) from exc
        except anthropic.APIError as exc:
            raise ProviderError(
                message=f"Anthropic {kind} API error: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
