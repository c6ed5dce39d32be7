"""Orchestrator for the PDF ingestion pipeline.

Pipeline stages: **validate -> extract -> insert document -> chunk -> embed -> store**.

The :class:`IngestionService` implements the **Orchestrator pattern**: it
coordinates its collaborators (text extractor, chunker, embedding provider,
vector store) without any of them knowing about each other.  All of them
are injected via the constructor, so providers can be swapped without
touching this class.

Failure semantics: once the Document row exists, any later failure deletes
it again (with whatever chunks were written) before the original error is
re-raised with its ``stage`` set, so a failed upload never leaves a
half-indexed document behind.  Cancellation (a caller timeout or a
dropped client) takes the same path.
"""

from __future__ import annotations

import asyncio
import time
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from src.models.document import (
    ChunkRecord,
    DocumentCreate,
    ExtractionResult,
    IngestionResult,
    UploadedFile,
)
from src.services.ingestion.chunker import TextChunker
from src.services.ingestion.pdf_extractor import PDFTextExtractor
from src.utils.concurrency import DocumentLockRegistry
from src.utils.errors import DocChatError, FileTooLargeError, ValidationError

if TYPE_CHECKING:
    from src.interfaces.embedding_provider import IEmbeddingProvider
    from src.interfaces.vector_store_provider import IVectorStoreProvider

logger = structlog.get_logger(logger_name=__name__)

PDF_MIME_TYPE = "application/pdf"
_PDF_SIGNATURE = b"%PDF-"


def title_from_filename(filename: str) -> str:
    """Strip any directory part and a trailing ``.pdf`` (case-insensitive)."""
    name = Path(filename).name
    if name.lower().endswith(".pdf"):
        name = name[: -len(".pdf")]
    return name or "untitled"


class IngestionService:
    """Orchestrates the ingestion pipeline for uploaded PDFs.

    Parameters
    ----------
    extractor:
        Turns PDF bytes into text with page spans.
    chunker:
        Splits the text into fixed-size chunks.
    embedding_provider:
        Generates embedding vectors for chunk text.
    vector_store:
        Persists the document row and the embedded chunks.
    lock_registry:
        Per-document write locks shared with the delete path.
    max_upload_bytes:
        Largest accepted upload.
    """

    def __init__(
        self,
        extractor: PDFTextExtractor,
        chunker: TextChunker,
        embedding_provider: IEmbeddingProvider,
        vector_store: IVectorStoreProvider,
        lock_registry: DocumentLockRegistry | None = None,
        max_upload_bytes: int = 20 * 1024 * 1024,
    ) -> None:
        self._extractor = extractor
        self._chunker = chunker
        self._embedding_provider = embedding_provider
        self._vector_store = vector_store
        self._locks = lock_registry or DocumentLockRegistry()
        self._max_upload_bytes = max_upload_bytes

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def ingest(self, file: UploadedFile) -> IngestionResult:
        """Ingest one uploaded PDF and return a summary of the stored document.

        Raises
        ------
        ValidationError
            Wrong MIME type, empty file, missing PDF signature, or too large.
        ExtractionError
            Unreadable PDF or fewer than the minimum characters of text.
        ProviderError
            Embedding failed (``stage="embed"``); nothing is persisted.
        StorageError
            A store write failed (``stage="store"``); nothing is persisted.
        """
        start = time.monotonic()
        self._validate(file)

        extraction = await self._extractor.extract(file.data)

        meta = DocumentCreate(
            title=title_from_filename(file.filename),
            filename=file.filename,
            file_size_bytes=file.size,
            page_count=extraction.page_count,
            content=extraction.text,
        )

        async with self._locks.lock(meta.id):
            try:
                document = await self._vector_store.insert_document(meta)
            except DocChatError as exc:
                raise exc.with_stage("store")

            try:
                chunk_count = await self._chunk_embed_store(document.id, extraction)
            except BaseException as exc:
                # Shielded so a cancelled ingestion still removes its row.
                await asyncio.shield(self._compensate(document.id, exc))
                raise

        elapsed = round(time.monotonic() - start, 3)
        logger.info(
            "ingestion_complete",
            document_id=document.id,
            title=document.title,
            pages=extraction.page_count,
            chunks=chunk_count,
            method=extraction.method,
            elapsed_s=elapsed,
        )
        return IngestionResult(
            document_id=document.id,
            title=document.title,
            chunk_count=chunk_count,
            page_count=extraction.page_count,
            ingestion_time=elapsed,
        )

    async def ingest_path(self, path: str | Path) -> IngestionResult:
        """Ingest a PDF from the local filesystem (CLI entry point)."""
        file_path = Path(path)
        data = file_path.read_bytes()
        return await self.ingest(
            UploadedFile(filename=file_path.name, content_type=PDF_MIME_TYPE, data=data)
        )

    async def delete_document(self, document_id: str) -> bool:
        """Delete a document under its write lock.  ``False`` if it did not exist."""
        async with self._locks.lock(document_id):
            return await self._vector_store.delete_document(document_id)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _validate(self, file: UploadedFile) -> None:
        if file.content_type != PDF_MIME_TYPE:
            raise ValidationError(
                message=f"Only PDF files are supported (got {file.content_type or 'unknown'})",
                stage="validate",
            )
        if not file.data:
            raise ValidationError(message="Uploaded file is empty", stage="validate")
        if file.size > self._max_upload_bytes:
            raise FileTooLargeError(
                message=(
                    f"File too large: {file.size} bytes "
                    f"(maximum {self._max_upload_bytes} bytes)"
                ),
                stage="validate",
            )
        if not file.data.startswith(_PDF_SIGNATURE):
            raise ValidationError(
                message="File does not look like a PDF (missing %PDF- header)",
                stage="validate",
            )

    async def _chunk_embed_store(self, document_id: str, extraction: ExtractionResult) -> int:
        texts = self._chunker.chunk(extraction.text)
        offsets = self._chunker.offsets(extraction.text)

        try:
            embeddings = await self._embedding_provider.embed(texts)
        except DocChatError as exc:
            raise exc.with_stage("embed")

        records = [
            ChunkRecord(
                content=text,
                embedding=embedding,
                chunk_index=index,
                page_number=extraction.page_for_offset(offset),
            )
            for index, (text, embedding, offset) in enumerate(
                zip(texts, embeddings, offsets, strict=True)
            )
        ]

        try:
            return await self._vector_store.insert_chunks(document_id, records)
        except DocChatError as exc:
            raise exc.with_stage("store")

    async def _compensate(self, document_id: str, cause: BaseException) -> None:
        """Remove a partially ingested document; the caller re-raises *cause*."""
        logger.warning(
            "ingestion_rollback",
            document_id=document_id,
            error=str(cause) or type(cause).__name__,
            stage=getattr(cause, "stage", None),
        )
        try:
            await self._vector_store.delete_document(document_id)
        except DocChatError as exc:
            logger.error(
                "ingestion_rollback_failed",
                document_id=document_id,
                error=str(exc),
            )
