"""Abstract base class for vector-store service providers.

Defines the contract for persisting documents with their embedded chunks,
querying chunks by cosine similarity, and removing documents.  The RAG layer
only ever talks to this interface, so the backend (ChromaDB today) can be
swapped without touching the ingestion or QA services.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from src.models.document import ChunkRecord, CorpusStats, Document, DocumentCreate, SearchMatch


# Concrete implementation: ChromaDBProvider (src/providers/vector_store/)
# Chunks and vectors live in a ChromaDB collection using the cosine space;
# Document rows live in an IDocumentStore (SQLite).
class IVectorStoreProvider(ABC):
    """Contract for the document + chunk store used by the RAG pipeline.

    All query and mutation methods are async so network-backed stores do
    not block the event loop.

    Invariants every implementation upholds:

    * every stored chunk references an existing document;
    * every stored vector has the same length;
    * :meth:`search` results are sorted by descending similarity, all at or
      above the requested threshold, and never more than requested.
    """

    @abstractmethod
    async def insert_document(self, meta: DocumentCreate) -> Document:
        """Persist a document row and return it with its upload date.

        Raises
        ------
        src.utils.errors.StorageError
            If the row cannot be written.
        """

    @abstractmethod
    async def insert_chunks(self, document_id: str, records: list[ChunkRecord]) -> int:
        """Store embedded chunks for an existing document.

        Parameters
        ----------
        document_id:
            Id of a document previously returned by :meth:`insert_document`.
        records:
            Chunks with their embeddings, chunk indices and page numbers.

        Returns
        -------
        int
            Number of chunks stored.

        Raises
        ------
        src.utils.errors.StorageError
            If the document does not exist or the write fails.
        src.utils.errors.ValidationError
            If the embeddings do not all share the store's dimension.
        """

    @abstractmethod
    async def search(
        self,
        query_embedding: list[float],
        match_threshold: float,
        match_count: int,
    ) -> list[SearchMatch]:
        """Return the chunks most similar to *query_embedding*.

        Similarity is ``1 - cosine distance``.  Only matches with
        ``similarity >= match_threshold`` are returned, sorted descending,
        at most *match_count* of them.  An empty store yields ``[]``.
        """

    @abstractmethod
    async def delete_document(self, document_id: str) -> bool:
        """Remove a document and all of its chunks.

        Returns
        -------
        bool
            ``True`` if the document existed, ``False`` otherwise.

        Raises
        ------
        src.utils.errors.StorageError
            If deletion fails.  Chunks already removed are restored before
            the error propagates.
        """

    @abstractmethod
    async def get_document(self, document_id: str) -> Document | None:
        """Return the document with *document_id*, or ``None``."""

    @abstractmethod
    async def list_documents(self) -> list[Document]:
        """Return all documents, newest first."""

    @abstractmethod
    async def count_chunks(self, document_id: str | None = None) -> int:
        """Count stored chunks, optionally restricted to one document."""

    @abstractmethod
    async def get_stats(self) -> CorpusStats:
        """Return document and chunk totals."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this vector store."""

    @abstractmethod
    def is_available(self) -> bool:
        """Return ``True`` if the backing store can be used."""
