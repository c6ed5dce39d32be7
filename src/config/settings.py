"""Application settings loaded from environment variables via pydantic-settings.

# ─── HOW SETTINGS WORK ────────────────────────────────────────────────
#
# pydantic-settings reads configuration from two sources, in priority
# order:
#
#   1. **Environment variables**, e.g. OPENAI_API_KEY=sk-abc123
#   2. **.env file** in the working directory (local development)
#
# Field ``openai_api_key`` maps to env var ``OPENAI_API_KEY``.  Defaults
# below apply when neither source sets a value.
#
# The .env file holds secrets and is never committed.
# ──────────────────────────────────────────────────────────────────────
"""

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """DocChat application settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === Providers ===
    # Empty string = "not configured".  Completion prefers Anthropic when its
    # key is set; embeddings always go through the OpenAI-compatible client.
    openai_api_key: str = ""
    openai_base_url: str = ""  # OpenAI-compatible endpoint (TogetherAI, Azure proxy, ...)
    openai_text_model: str = ""  # Empty = gpt-4o-mini
    openai_vision_model: str = ""  # Empty = same as text model
    openai_embedding_model: str = ""  # Empty = text-embedding-3-small
    anthropic_api_key: str = ""
    anthropic_model: str = ""  # Empty = provider default

    # === Storage ===
    chromadb_persist_dir: str = "./data/chromadb"
    chromadb_collection: str = "docchat_chunks"
    sqlite_db_path: str = "data/docchat.db"

    # === Ingestion ===
    chunk_size: int = 1000
    min_extracted_chars: int = 50
    max_upload_bytes: int = 20 * 1024 * 1024
    pdf_ocr_fallback_enabled: bool = False
    pdf_ocr_max_pages: int = 20
    embedding_batch_size: int = 100
    embedding_concurrency: int = 4

    # === Retrieval / QA ===
    rag_match_threshold: float = 0.7
    rag_match_count: int = 5
    qa_history_turns: int = 6
    qa_temperature: float = 0.7
    qa_max_tokens: int = 1000
    conversation_history_limit: int = 10

    # === Provider call policy ===
    provider_timeout_seconds: float = 25.0
    provider_max_retries: int = 3
    provider_retry_backoff: float = 1.0  # seconds, multiplied by attempt number

    # === App Config ===
    cors_origins: str = "*"  # Comma-separated list
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_env: str = "development"
    log_level: str = "INFO"

    @field_validator("chunk_size", "embedding_batch_size", "embedding_concurrency", "rag_match_count")
    @classmethod
    def _must_be_positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("must be a positive integer")
        return value

    def get_cors_origins(self) -> list[str]:
        """Split ``cors_origins`` into a list, dropping blanks."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    def get_available_llm_providers(self) -> list[str]:
        """Return a list of LLM provider names that have non-empty API keys configured."""
        providers: list[str] = []
        if self.anthropic_api_key:
            providers.append("anthropic")
        if self.openai_api_key:
            providers.append("openai")
        return providers
