"""Pydantic request/response schemas for the DocChat API.

Defines the public contract for every REST endpoint: document upload,
listing and deletion, chat, and health.

# ─── HOW SCHEMAS WORK ─────────────────────────────────────────────────
#
# FastAPI uses these models to validate request bodies, serialise
# responses (via response_model=...), and generate the OpenAPI docs.
#
# The browser client speaks camelCase (``conversationId``, ``pageCount``)
# while Python code uses snake_case.  ``_CamelModel`` bridges the two:
# fields are declared in snake_case, serialised by alias in camelCase,
# and accepted in either form on input.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


class UploadedDocument(_CamelModel):
    """Summary of a freshly ingested document."""

    id: str
    title: str
    chunks: int = Field(ge=0, description="Number of chunks stored.")
    page_count: int = Field(ge=0)


class DocumentUploadResponse(_CamelModel):
    """Response returned after a successful upload."""

    success: bool = True
    document: UploadedDocument


class DocumentSummary(_CamelModel):
    """One document in the listing; full text is omitted."""

    id: str
    title: str
    filename: str
    file_size_bytes: int
    page_count: int
    upload_date: datetime
    chunks: int = Field(ge=0)


class DocumentListResponse(_CamelModel):
    documents: list[DocumentSummary] = Field(default_factory=list)


class DocumentDeleteResponse(_CamelModel):
    success: bool = True
    document_id: str


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------


class ChatRequest(_CamelModel):
    """A question, optionally continuing an earlier conversation.

    ``question`` defaults to empty so a missing value reaches the QA
    service and is rejected there with the standard 400 error body.
    """

    question: str = ""
    conversation_id: str | None = None


class SourceResponse(_CamelModel):
    document_id: str
    page_number: int
    chunk_index: int
    similarity: float


class ChatResponse(_CamelModel):
    answer: str
    sources: list[SourceResponse] = Field(default_factory=list)
    conversation_id: str


# ---------------------------------------------------------------------------
# Health / errors
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    """Application health check response."""

    status: str
    version: str
    providers: dict[str, Any]
    documents: int = 0
    chunks: int = 0


class ErrorResponse(BaseModel):
    """Standard error response body: message plus exception type name."""

    error: str
    type: str
