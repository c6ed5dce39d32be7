"""FastAPI API routes for DocChat.

Provides REST endpoints for PDF upload, document listing and deletion,
question answering, and health checks.  Service dependencies are resolved
from ``app.state`` via FastAPI's ``Depends`` using the ``Annotated`` pattern.

# ─── API ROUTE MAP ────────────────────────────────────────────────────
#
# Endpoint                     Method  Description
# ─────────────────────────────────────────────────────────────────────
# /api/v1/documents            POST    Upload PDF → extract → chunk → embed → store
# /api/v1/documents            GET     List documents with chunk counts
# /api/v1/documents/{id}       GET     One document summary
# /api/v1/documents/{id}       DELETE  Remove document and its chunks
# /api/v1/chat                 POST    Ask a question (RAG)
# /api/v1/health               GET     Health check + provider status
#
# Errors are raised as DocChatError subclasses and rendered by
# ErrorHandlingMiddleware as {"error": ..., "type": ...}.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import asyncio
import uuid
from typing import Annotated, Any

import structlog
from fastapi import APIRouter, Depends, Request, UploadFile

from src.api.schemas import (
    ChatRequest,
    ChatResponse,
    DocumentDeleteResponse,
    DocumentListResponse,
    DocumentSummary,
    DocumentUploadResponse,
    ErrorResponse,
    HealthResponse,
    SourceResponse,
    UploadedDocument,
)
from src.interfaces.conversation_store import IConversationStore
from src.interfaces.vector_store_provider import IVectorStoreProvider
from src.models.document import ConversationTurn, Document, UploadedFile
from src.services.ingestion.ingestion_service import IngestionService
from src.services.qa_service import QAService
from src.utils.errors import DocumentNotFoundError, FileTooLargeError, StorageError
from src.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

APP_VERSION = "0.1.0"

router = APIRouter(prefix="/api/v1")

# Uploads are read in 64 KB pieces so an oversized file is rejected after
# buffering only slightly more than the limit.
_UPLOAD_CHUNK_SIZE = 64 * 1024

# PyMuPDF holds the whole document in memory while extracting; two at a
# time keeps peak memory bounded.  Later uploads queue on the semaphore.
_UPLOAD_SEMAPHORE = asyncio.Semaphore(2)


# ---------------------------------------------------------------------------
# Dependency injection helpers - resolve singletons from app.state
# ---------------------------------------------------------------------------


def _get_ingestion_service(request: Request) -> IngestionService:
    """Return the ingestion service from application state."""
    return request.app.state.ingestion_service


def _get_qa_service(request: Request) -> QAService:
    """Return the Q&A service from application state."""
    return request.app.state.qa_service


def _get_vector_store(request: Request) -> IVectorStoreProvider:
    """Return the vector store from application state."""
    return request.app.state.vector_store


def _get_conversation_store(request: Request) -> IConversationStore:
    """Return the conversation store from application state."""
    return request.app.state.conversation_store


def _get_settings(request: Request) -> Any:
    return request.app.state.settings


IngestionDep = Annotated[IngestionService, Depends(_get_ingestion_service)]
QAServiceDep = Annotated[QAService, Depends(_get_qa_service)]
VectorStoreDep = Annotated[IVectorStoreProvider, Depends(_get_vector_store)]
ConversationStoreDep = Annotated[IConversationStore, Depends(_get_conversation_store)]
SettingsDep = Annotated[Any, Depends(_get_settings)]


async def _summarize(document: Document, vector_store: IVectorStoreProvider) -> DocumentSummary:
    return DocumentSummary(
        id=document.id,
        title=document.title,
        filename=document.filename,
        file_size_bytes=document.file_size_bytes,
        page_count=document.page_count,
        upload_date=document.upload_date,
        chunks=await vector_store.count_chunks(document.id),
    )


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


@router.post(
    "/documents",
    response_model=DocumentUploadResponse,
    responses={
        400: {"model": ErrorResponse},
        413: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
    },
    summary="Upload a PDF and index it for question answering",
)
async def upload_document(
    file: UploadFile,
    ingestion: IngestionDep,
    app_settings: SettingsDep,
) -> DocumentUploadResponse:
    """Accept a PDF, extract and chunk its text, embed the chunks, and store them."""
    max_bytes = app_settings.max_upload_bytes

    parts: list[bytes] = []
    total_size = 0
    while True:
        piece = await file.read(_UPLOAD_CHUNK_SIZE)
        if not piece:
            break
        total_size += len(piece)
        if total_size > max_bytes:
            raise FileTooLargeError(
                message=f"File too large: more than {max_bytes} bytes",
                stage="validate",
            )
        parts.append(piece)
    data = b"".join(parts)
    del parts

    uploaded = UploadedFile(
        filename=file.filename or "document.pdf",
        content_type=file.content_type or "",
        data=data,
    )

    async with _UPLOAD_SEMAPHORE:
        result = await ingestion.ingest(uploaded)

    return DocumentUploadResponse(
        success=True,
        document=UploadedDocument(
            id=result.document_id,
            title=result.title,
            chunks=result.chunk_count,
            page_count=result.page_count,
        ),
    )


@router.get(
    "/documents",
    response_model=DocumentListResponse,
    summary="List uploaded documents",
)
async def list_documents(vector_store: VectorStoreDep) -> DocumentListResponse:
    documents = await vector_store.list_documents()
    return DocumentListResponse(
        documents=[await _summarize(doc, vector_store) for doc in documents]
    )


@router.get(
    "/documents/{document_id}",
    response_model=DocumentSummary,
    responses={404: {"model": ErrorResponse}},
    summary="Get one document",
)
async def get_document(document_id: str, vector_store: VectorStoreDep) -> DocumentSummary:
    document = await vector_store.get_document(document_id)
    if document is None:
        raise DocumentNotFoundError(message=f"Document {document_id} not found")
    return await _summarize(document, vector_store)


@router.delete(
    "/documents/{document_id}",
    response_model=DocumentDeleteResponse,
    responses={404: {"model": ErrorResponse}},
    summary="Delete a document and its chunks",
)
async def delete_document(document_id: str, ingestion: IngestionDep) -> DocumentDeleteResponse:
    removed = await ingestion.delete_document(document_id)
    if not removed:
        raise DocumentNotFoundError(message=f"Document {document_id} not found")
    return DocumentDeleteResponse(success=True, document_id=document_id)


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------


@router.post(
    "/chat",
    response_model=ChatResponse,
    responses={400: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
    summary="Ask a question about the uploaded documents",
)
async def chat(
    body: ChatRequest,
    qa_service: QAServiceDep,
    conversation_store: ConversationStoreDep,
    app_settings: SettingsDep,
) -> ChatResponse:
    """Answer a question from the indexed documents.

    Prior turns are loaded when ``conversationId`` is supplied; a new id is
    issued otherwise.  The question and answer are appended to the
    conversation only after a successful answer.
    """
    conversation_id = body.conversation_id or str(uuid.uuid4())

    history: list[ConversationTurn] = []
    if body.conversation_id:
        try:
            history = await conversation_store.get_recent_messages(
                conversation_id, limit=app_settings.conversation_history_limit
            )
        except StorageError as exc:
            _logger.warning(
                "conversation_history_unavailable",
                conversation_id=conversation_id,
                error=str(exc),
            )

    result = await qa_service.answer(body.question, conversation_history=history)

    try:
        await conversation_store.append_messages(
            conversation_id,
            [
                ConversationTurn(role="user", content=body.question),
                ConversationTurn(role="assistant", content=result.answer),
            ],
        )
    except StorageError as exc:
        _logger.warning(
            "conversation_save_failed",
            conversation_id=conversation_id,
            error=str(exc),
        )

    return ChatResponse(
        answer=result.answer,
        sources=[
            SourceResponse(
                document_id=s.document_id,
                page_number=s.page_number,
                chunk_index=s.chunk_index,
                similarity=s.similarity,
            )
            for s in result.sources
        ],
        conversation_id=conversation_id,
    )


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health(request: Request) -> HealthResponse:
    """Report provider availability and corpus size.

    Answers even when no API keys are configured; ``status`` is
    ``"degraded"`` if a provider is unconfigured or the store is unreadable.
    """
    provider_list: list[dict[str, Any]] = getattr(request.app.state, "provider_list", [])
    providers = {p["name"]: p["available"] for p in provider_list}
    status = "ok" if all(providers.values()) else "degraded"

    documents = chunks = 0
    vector_store = getattr(request.app.state, "vector_store", None)
    if vector_store is not None:
        try:
            stats = await vector_store.get_stats()
            documents, chunks = stats.total_documents, stats.total_chunks
        except StorageError as exc:
            _logger.warning("health_stats_failed", error=str(exc))
            status = "degraded"

    return HealthResponse(
        status=status,
        version=APP_VERSION,
        providers=providers,
        documents=documents,
        chunks=chunks,
    )
