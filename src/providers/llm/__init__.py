"""LLM provider adapters.

Two concrete implementations of ILLMProvider (src/interfaces/llm_provider.py):
    - AnthropicLLMProvider - Claude (vision + text), preferred when its key is set
    - OpenAILLMProvider    - gpt-4o-mini by default; also any OpenAI-compatible API

src/dependencies.py picks the provider matching the available API key.
"""

from src.providers.llm.anthropic_provider import AnthropicLLMProvider
from src.providers.llm.openai_provider import OpenAILLMProvider

__all__ = ["OpenAILLMProvider", "AnthropicLLMProvider"]
