"""Vector store provider implementations.

ChromaDB is the sole vector store implementation. It stores document chunk
embeddings on disk (persistent) and supports cosine-similarity search with
document-id metadata; Document rows are delegated to an IDocumentStore.
Data persists at CHROMADB_PERSIST_DIR (default: ./data/chromadb).

To swap ChromaDB for another vector database (Qdrant, Pinecone, Weaviate),
create a new class implementing IVectorStoreProvider and register it in src/dependencies.py.
"""

from src.providers.vector_store.chromadb_provider import ChromaDBProvider

__all__ = ["ChromaDBProvider"]
