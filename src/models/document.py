"""Document and retrieval data models for the DocChat knowledge base.

Pydantic v2 models for uploaded PDFs, their chunks, search matches, and the
results of the ingestion and question-answering pipelines.  All models are
frozen so a value handed to another component cannot change underneath it.

RAG overview:
    1. INGESTION: an uploaded PDF's text is extracted and split into fixed
       size chunks.
    2. EMBEDDING: each chunk becomes a vector that captures its meaning.
    3. STORAGE: chunks and vectors go into ChromaDB; the Document row goes
       into SQLite.
    4. RETRIEVAL: a question is embedded and the closest chunks are fetched.
    5. GENERATION: those chunks become the context block of the LLM prompt.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------
class DocumentCreate(BaseModel):
    """Metadata for a document about to be inserted.

    The id is generated up front so the ingestion pipeline can take the
    per-document write lock before the row exists.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_id, description="Document identifier (UUID).")
    title: str = Field(description="Filename without its .pdf extension.")
    filename: str = Field(description="Original uploaded filename.")
    file_size_bytes: int = Field(ge=0, description="Size of the uploaded PDF in bytes.")
    page_count: int = Field(ge=0, description="Number of pages in the PDF.")
    content: str = Field(description="Full extracted text of the document.")


class Document(BaseModel):
    """A persisted document.  Immutable once created."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    filename: str
    file_size_bytes: int = Field(ge=0)
    page_count: int = Field(ge=0)
    content: str
    upload_date: datetime = Field(default_factory=_utcnow)


class DocumentChunk(BaseModel):
    """A stored chunk of a document with its embedding.

    ``chunk_index`` is the 0-based position of the chunk in the document's
    concatenated text; ``page_number`` is the 1-based page holding the
    chunk's first character.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    document_id: str
    content: str
    embedding: list[float]
    chunk_index: int = Field(ge=0)
    page_number: int = Field(ge=1)


class ChunkRecord(BaseModel):
    """Insert payload for :meth:`IVectorStoreProvider.insert_chunks`."""

    model_config = ConfigDict(frozen=True)

    content: str
    embedding: list[float]
    chunk_index: int = Field(ge=0)
    page_number: int = Field(default=1, ge=1)


class SearchMatch(BaseModel):
    """One similarity-search hit, ordered by descending ``similarity``."""

    model_config = ConfigDict(frozen=True)

    document_id: str
    content: str
    chunk_index: int = Field(ge=0)
    page_number: int = Field(ge=1)
    similarity: float = Field(description="Cosine similarity (1 - cosine distance).")


class CorpusStats(BaseModel):
    """Aggregate counts for the health endpoint and ``stats`` CLI command."""

    model_config = ConfigDict(frozen=True)

    total_documents: int = Field(default=0, ge=0)
    total_chunks: int = Field(default=0, ge=0)


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------
class PageSpan(BaseModel):
    """Half-open ``[start, end)`` range of one page in the extracted text."""

    model_config = ConfigDict(frozen=True)

    page_number: int = Field(ge=1)
    start: int = Field(ge=0)
    end: int = Field(ge=0)


class ExtractionResult(BaseModel):
    """Text extracted from a PDF plus per-page provenance."""

    model_config = ConfigDict(frozen=True)

    text: str
    page_count: int = Field(ge=0)
    pages: list[PageSpan] = Field(default_factory=list)
    method: str = Field(default="structural", description='"structural" or "ocr".')

    def page_for_offset(self, offset: int) -> int:
        """Return the 1-based page whose span contains *offset*.

        Offsets falling in the blank separator between two pages belong to
        the following page.  Returns 1 when no spans were recorded.
        """
        page = 1
        for span in self.pages:
            if offset < span.start:
                return span.page_number
            page = span.page_number
            if offset < span.end:
                return page
        return page


# ---------------------------------------------------------------------------
# Ingestion
# ---------------------------------------------------------------------------
class UploadedFile(BaseModel):
    """A file handed to the ingestion pipeline."""

    model_config = ConfigDict(frozen=True)

    filename: str
    content_type: str
    data: bytes = Field(repr=False)

    @property
    def size(self) -> int:
        return len(self.data)


class IngestionResult(BaseModel):
    """Summary of one successful document ingestion."""

    model_config = ConfigDict(frozen=True)

    document_id: str
    title: str
    chunk_count: int = Field(ge=0)
    page_count: int = Field(ge=0)
    ingestion_time: float = Field(
        default=0.0, ge=0.0, description="Wall-clock seconds for the run."
    )


# ---------------------------------------------------------------------------
# Question answering
# ---------------------------------------------------------------------------
class ConversationTurn(BaseModel):
    """One prior message in a conversation."""

    model_config = ConfigDict(frozen=True)

    role: str = Field(description='"user" or "assistant".')
    content: str


class Source(BaseModel):
    """Provenance of one context chunk used to answer a question."""

    model_config = ConfigDict(frozen=True)

    document_id: str
    page_number: int = Field(ge=1)
    chunk_index: int = Field(ge=0)
    similarity: float


class QAAnswer(BaseModel):
    """The answer to a question and the chunks it was grounded on."""

    model_config = ConfigDict(frozen=True)

    answer: str
    sources: list[Source] = Field(default_factory=list)
