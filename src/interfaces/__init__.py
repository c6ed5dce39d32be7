"""Public interface definitions for every swappable DocChat backend.

Services depend only on these abstract base classes.  Concrete adapters
live in ``src/providers/`` and are wired together in
``src/dependencies.py``, so a test can hand a service an in-memory fake
instead of a real OpenAI client or ChromaDB collection.

CONCRETE PROVIDER MAP:
    Interface                  →  Concrete implementations (in src/providers/)
    ─────────────────────────────────────────────────────────────────────
    IEmbeddingProvider         →  OpenAIEmbeddingProvider
    ILLMProvider               →  AnthropicLLMProvider, OpenAILLMProvider
    IVectorStoreProvider       →  ChromaDBProvider
    IDocumentStore             →  SQLiteDocumentStore
    IConversationStore         →  SQLiteConversationStore
"""

from src.interfaces.conversation_store import IConversationStore
from src.interfaces.document_store import IDocumentStore
from src.interfaces.embedding_provider import IEmbeddingProvider
from src.interfaces.llm_provider import ILLMProvider
from src.interfaces.vector_store_provider import IVectorStoreProvider

__all__ = [
    "IConversationStore",
    "IDocumentStore",
    "IEmbeddingProvider",
    "ILLMProvider",
    "IVectorStoreProvider",
]
