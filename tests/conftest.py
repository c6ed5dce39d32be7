"""Shared pytest fixtures for the DocChat test suite."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import fitz
import pytest

from src.config.settings import Settings
from src.interfaces.embedding_provider import IEmbeddingProvider
from src.interfaces.llm_provider import ILLMProvider
from src.providers.conversation.sqlite_conversation_store import SQLiteConversationStore
from src.providers.document_store.sqlite_document_store import SQLiteDocumentStore
from src.providers.vector_store.chromadb_provider import ChromaDBProvider

# ---------------------------------------------------------------------------
# Deterministic embeddings
# ---------------------------------------------------------------------------

_VOCABULARY = ("alpha", "beta", "gamma", "delta")


class KeywordEmbeddingProvider(IEmbeddingProvider):
    """Embeds text as keyword presence flags plus a constant bias term.

    A chunk mentioning alpha, beta and gamma scores ~0.85 cosine similarity
    against the question "alpha" and ~0.68 against "delta", which puts the
    two questions on either side of the default 0.7 threshold.
    """

    def __init__(self) -> None:
        self.calls: list[list[str]] = []

    async def embed(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        return [self._vector(text) for text in texts]

    async def embed_single(self, text: str) -> list[float]:
        return (await self.embed([text]))[0]

    def get_dimension(self) -> int:
        return len(_VOCABULARY) + 1

    def get_provider_name(self) -> str:
        return "keyword-test"

    def is_available(self) -> bool:
        return True

    @staticmethod
    def _vector(text: str) -> list[float]:
        lowered = text.lower()
        return [1.0 if word in lowered else 0.0 for word in _VOCABULARY] + [2.0]


# ---------------------------------------------------------------------------
# PDF builders
# ---------------------------------------------------------------------------


def build_pdf(pages: list[str]) -> bytes:
    """Return the bytes of a PDF with one page per entry in *pages*.

    Empty strings produce blank pages (no text layer).
    """
    doc = fitz.open()
    try:
        for text in pages:
            page = doc.new_page()
            if text:
                page.insert_textbox(fitz.Rect(50, 50, 550, 800), text, fontsize=8)
        return doc.tobytes()
    finally:
        doc.close()


@pytest.fixture
def alpha_pdf() -> bytes:
    """Three pages of "Alpha Beta Gamma", enough text for two 1000-char chunks."""
    return build_pdf(["Alpha Beta Gamma " * 30] * 3)


@pytest.fixture
def tiny_pdf() -> bytes:
    """A PDF whose only text is "Hi"."""
    return build_pdf(["Hi"])


# ---------------------------------------------------------------------------
# Settings and providers
# ---------------------------------------------------------------------------


def make_settings(tmp_path: Path | None = None, **overrides) -> Settings:
    """Build a Settings instance isolated from the developer's environment."""
    defaults: dict = {
        "openai_api_key": "sk-test",
        "openai_base_url": "",
        "openai_text_model": "",
        "openai_vision_model": "",
        "openai_embedding_model": "",
        "anthropic_api_key": "",
        "provider_max_retries": 3,
        "provider_retry_backoff": 0.0,
    }
    if tmp_path is not None:
        defaults["chromadb_persist_dir"] = str(tmp_path / "chroma")
        defaults["sqlite_db_path"] = str(tmp_path / "docchat.db")
    defaults.update(overrides)
    return Settings(**defaults)


@pytest.fixture
def embedding_provider() -> KeywordEmbeddingProvider:
    return KeywordEmbeddingProvider()


@pytest.fixture
def mock_llm_provider() -> ILLMProvider:
    """Mock ILLMProvider that returns configurable responses.

    Override with ``mock_llm_provider.complete.return_value = "custom"`` or
    ``mock_llm_provider.complete.side_effect = ...`` for specific tests.
    """
    mock = MagicMock(spec=ILLMProvider)
    mock.get_provider_name.return_value = "mock-llm"
    mock.is_available.return_value = True
    mock.supports_vision.return_value = False
    mock.validate_credentials = AsyncMock(return_value=True)
    mock.complete = AsyncMock(return_value="Alpha is described on page 1.")
    mock.vision_extract = AsyncMock(return_value="")
    return mock


# ---------------------------------------------------------------------------
# Real local stores under tmp_path
# ---------------------------------------------------------------------------


@pytest.fixture
async def document_store(tmp_path: Path) -> SQLiteDocumentStore:
    store = SQLiteDocumentStore(db_path=tmp_path / "docchat.db")
    await store.initialize()
    return store


@pytest.fixture
async def conversation_store(tmp_path: Path) -> SQLiteConversationStore:
    store = SQLiteConversationStore(db_path=tmp_path / "docchat.db")
    await store.initialize()
    return store


@pytest.fixture
def vector_store(document_store: SQLiteDocumentStore, tmp_path: Path) -> ChromaDBProvider:
    return ChromaDBProvider(
        document_store=document_store,
        persist_directory=str(tmp_path / "chroma"),
        collection_name="test_chunks",
    )


@pytest.fixture
def settings_factory():
    """Return :func:`make_settings` so tests can build Settings with overrides."""
    return make_settings


@pytest.fixture
def pdf_builder():
    """Return :func:`build_pdf` for tests that need custom page text."""
    return build_pdf
