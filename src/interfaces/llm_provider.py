"""Abstract base class for LLM service providers.

Defines the contract for the completion backend used to answer questions
and, optionally, to read scanned PDF pages through a vision model.
Implementations wrap the Anthropic API (Claude) or any OpenAI-compatible
chat API.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from src.models.document import ConversationTurn


# Concrete implementations: AnthropicLLMProvider, OpenAILLMProvider
# Located in: src/providers/llm/
class ILLMProvider(ABC):
    """Contract for LLM services used by the QA engine and OCR fallback.

    Providers must support plain text completion; vision (image analysis) is
    optional and declared via :meth:`supports_vision`.
    """

    @abstractmethod
    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float = 0.7,
        max_tokens: int = 1000,
        history: list[ConversationTurn] | None = None,
    ) -> str:
        """Generate a text completion from the model.

        Parameters
        ----------
        system_prompt:
            The system/instruction message that sets the model's behaviour.
        user_prompt:
            The final user message.
        temperature:
            Sampling temperature (0.0 = deterministic, 1.0 = creative).
        max_tokens:
            Upper bound on the number of tokens in the response.
        history:
            Prior conversation turns, oldest first, sent between the system
            message and *user_prompt*.

        Returns
        -------
        str
            The model's text response.

        Raises
        ------
        src.utils.errors.ProviderError
            If the API call fails or returns an empty response.
        src.utils.errors.ConfigurationError
            If the provider has no credentials.
        """

    @abstractmethod
    async def vision_extract(self, image_bytes: bytes, prompt: str) -> str:
        """Read text from an image using the model's vision capability.

        Raises
        ------
        NotImplementedError
            If the provider does not support vision (check
            :meth:`supports_vision` first).
        src.utils.errors.ProviderError
            If the API call fails.
        """

    @abstractmethod
    def supports_vision(self) -> bool:
        """Return ``True`` if this provider can process image inputs."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this LLM provider."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if credentials are configured.

        Does not make an inference call.
        """

    @abstractmethod
    async def validate_credentials(self) -> bool:
        """Perform a lightweight API call to confirm credentials are valid.

        Unlike :meth:`is_available`, this actively contacts the service.
        """
