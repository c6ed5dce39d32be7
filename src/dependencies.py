"""Component wiring shared by the web app and the CLI tools.

``build_components`` constructs every provider and service once from a
:class:`Settings` instance and returns them as a flat dict; the FastAPI
lifespan copies the entries onto ``app.state`` and the CLI commands use
them directly.  ``initialize_components`` creates the SQLite tables.
"""

from __future__ import annotations

from typing import Any

import structlog

from src.config.settings import Settings
from src.interfaces.llm_provider import ILLMProvider
from src.providers.conversation.sqlite_conversation_store import SQLiteConversationStore
from src.providers.document_store.sqlite_document_store import SQLiteDocumentStore
from src.providers.embedding.openai_embedding_provider import OpenAIEmbeddingProvider
from src.providers.llm.anthropic_provider import AnthropicLLMProvider
from src.providers.llm.openai_provider import OpenAILLMProvider
from src.providers.vector_store.chromadb_provider import ChromaDBProvider
from src.services.ingestion.chunker import TextChunker
from src.services.ingestion.ingestion_service import IngestionService
from src.services.ingestion.pdf_extractor import PDFTextExtractor
from src.services.qa_service import QAService
from src.utils.concurrency import DocumentLockRegistry
from src.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)


def build_llm_provider(app_settings: Settings) -> ILLMProvider:
    """Select the completion provider based on configured API keys.

    Priority order: Anthropic -> OpenAI.  Without any key the OpenAI
    provider is still returned; it raises ``ConfigurationError`` on use.
    """
    if app_settings.anthropic_api_key:
        return AnthropicLLMProvider(settings=app_settings)
    return OpenAILLMProvider(settings=app_settings)


def build_components(app_settings: Settings) -> dict[str, Any]:
    """Construct every provider and service instance for the application.

    Returns a flat dict of named components to be stored on ``app.state``.
    """
    # -- Providers --
    embedding_provider = OpenAIEmbeddingProvider(settings=app_settings)
    llm = build_llm_provider(app_settings)

    # -- Storage --
    document_store = SQLiteDocumentStore(db_path=app_settings.sqlite_db_path)
    conversation_store = SQLiteConversationStore(db_path=app_settings.sqlite_db_path)
    vector_store = ChromaDBProvider(
        document_store=document_store,
        persist_directory=app_settings.chromadb_persist_dir,
        collection_name=app_settings.chromadb_collection,
        expected_dimension=embedding_provider.get_dimension(),
    )

    # -- Services --
    lock_registry = DocumentLockRegistry()
    extractor = PDFTextExtractor(
        min_chars=app_settings.min_extracted_chars,
        vision_provider=llm,
        ocr_fallback_enabled=app_settings.pdf_ocr_fallback_enabled,
        ocr_max_pages=app_settings.pdf_ocr_max_pages,
    )
    ingestion_service = IngestionService(
        extractor=extractor,
        chunker=TextChunker(chunk_size=app_settings.chunk_size),
        embedding_provider=embedding_provider,
        vector_store=vector_store,
        lock_registry=lock_registry,
        max_upload_bytes=app_settings.max_upload_bytes,
    )
    qa_service = QAService(
        embedding_provider=embedding_provider,
        vector_store=vector_store,
        llm=llm,
        match_threshold=app_settings.rag_match_threshold,
        match_count=app_settings.rag_match_count,
        history_turns=app_settings.qa_history_turns,
        temperature=app_settings.qa_temperature,
        max_tokens=app_settings.qa_max_tokens,
    )

    provider_list: list[dict[str, Any]] = [
        {
            "name": embedding_provider.get_provider_name(),
            "type": "embedding",
            "available": embedding_provider.is_available(),
        },
        {"name": llm.get_provider_name(), "type": "llm", "available": llm.is_available()},
        {
            "name": vector_store.get_provider_name(),
            "type": "vector_store",
            "available": vector_store.is_available(),
        },
    ]

    _logger.info(
        "components_built",
        llm=llm.get_provider_name(),
        embedding=embedding_provider.get_provider_name(),
        ocr_fallback=app_settings.pdf_ocr_fallback_enabled,
    )

    return {
        "settings": app_settings,
        "embedding_provider": embedding_provider,
        "llm": llm,
        "document_store": document_store,
        "conversation_store": conversation_store,
        "vector_store": vector_store,
        "lock_registry": lock_registry,
        "ingestion_service": ingestion_service,
        "qa_service": qa_service,
        "provider_list": provider_list,
    }


async def initialize_components(components: dict[str, Any]) -> None:
    """Create database tables for the SQLite-backed stores."""
    await components["document_store"].initialize()
    await components["conversation_store"].initialize()
