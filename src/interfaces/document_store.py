"""Abstract base class for the relational document table.

The vector store keeps chunks and embeddings; this store keeps one row per
uploaded PDF (title, filename, size, page count, full text, upload date).
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from src.models.document import Document, DocumentCreate


class IDocumentStore(ABC):
    """Contract for document-row persistence.

    All operations are async to support network-backed stores.
    """

    @abstractmethod
    async def initialize(self) -> None:
        """Create the schema if it does not exist yet."""

    @abstractmethod
    async def insert(self, meta: DocumentCreate) -> Document:
        """Insert a document row and return the stored document."""

    @abstractmethod
    async def get(self, document_id: str) -> Document | None:
        """Return the document row, or ``None`` when absent."""

    @abstractmethod
    async def list_all(self) -> list[Document]:
        """Return all rows ordered by upload date, newest first."""

    @abstractmethod
    async def delete(self, document_id: str) -> bool:
        """Delete a row.  Returns ``True`` if a row was removed."""

    @abstractmethod
    async def count(self) -> int:
        """Return the number of stored documents."""
