"""Unit tests for IngestionService - validation, orchestration, rollback."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.interfaces.embedding_provider import IEmbeddingProvider
from src.interfaces.vector_store_provider import IVectorStoreProvider
from src.models.document import (
    Document,
    DocumentCreate,
    ExtractionResult,
    PageSpan,
    UploadedFile,
)
from src.services.ingestion.chunker import TextChunker
from src.services.ingestion.ingestion_service import IngestionService, title_from_filename
from src.services.ingestion.pdf_extractor import PDFTextExtractor
from src.utils.errors import (
    ExtractionError,
    FileTooLargeError,
    ProviderError,
    StorageError,
    ValidationError,
)

_PDF_BYTES = b"%PDF-1.7\n fake body"


def _upload(
    data: bytes = _PDF_BYTES,
    filename: str = "Install Guide.pdf",
    content_type: str = "application/pdf",
) -> UploadedFile:
    return UploadedFile(filename=filename, content_type=content_type, data=data)


def _extraction() -> ExtractionResult:
    # page 1 = 12 chars, separator, page 2 = 12 chars -> 26 chars total
    return ExtractionResult(
        text="aaaaaaaaaaaa\n\nbbbbbbbbbbbb",
        page_count=2,
        pages=[
            PageSpan(page_number=1, start=0, end=12),
            PageSpan(page_number=2, start=14, end=26),
        ],
    )


def _document_from(meta: DocumentCreate) -> Document:
    return Document(
        id=meta.id,
        title=meta.title,
        filename=meta.filename,
        file_size_bytes=meta.file_size_bytes,
        page_count=meta.page_count,
        content=meta.content,
    )


@pytest.fixture
def extractor() -> MagicMock:
    mock = MagicMock(spec=PDFTextExtractor)
    mock.extract = AsyncMock(return_value=_extraction())
    return mock


@pytest.fixture
def embedder() -> MagicMock:
    async def _embed(texts: list[str]) -> list[list[float]]:
        return [[float(i), 1.0] for i in range(len(texts))]

    mock = MagicMock(spec=IEmbeddingProvider)
    mock.embed = AsyncMock(side_effect=_embed)
    return mock


@pytest.fixture
def store() -> MagicMock:
    mock = MagicMock(spec=IVectorStoreProvider)
    mock.insert_document = AsyncMock(side_effect=_document_from)
    mock.insert_chunks = AsyncMock(side_effect=lambda doc_id, records: len(records))
    mock.delete_document = AsyncMock(return_value=True)
    return mock


@pytest.fixture
def service(extractor, embedder, store) -> IngestionService:
    return IngestionService(
        extractor=extractor,
        chunker=TextChunker(chunk_size=10),
        embedding_provider=embedder,
        vector_store=store,
        max_upload_bytes=1024,
    )


class TestTitleFromFilename:
    @pytest.mark.parametrize(
        ("filename", "title"),
        [
            ("guide.pdf", "guide"),
            ("Guide.PDF", "Guide"),
            ("reports/q3.pdf", "q3"),
            ("notes", "notes"),
            (".pdf", "untitled"),
        ],
    )
    def test_strips_extension(self, filename: str, title: str) -> None:
        assert title_from_filename(filename) == title


class TestValidation:
    @pytest.mark.asyncio
    async def test_rejects_non_pdf_mime(self, service, extractor) -> None:
        with pytest.raises(ValidationError, match="Only PDF"):
            await service.ingest(_upload(content_type="text/plain"))
        extractor.extract.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_rejects_empty_file(self, service) -> None:
        with pytest.raises(ValidationError, match="empty"):
            await service.ingest(_upload(data=b""))

    @pytest.mark.asyncio
    async def test_rejects_oversized_file(self, service) -> None:
        with pytest.raises(FileTooLargeError) as exc_info:
            await service.ingest(_upload(data=b"%PDF-" + b"x" * 2000))
        assert exc_info.value.status_code == 413

    @pytest.mark.asyncio
    async def test_rejects_missing_signature(self, service) -> None:
        with pytest.raises(ValidationError, match="%PDF-"):
            await service.ingest(_upload(data=b"GIF89a..."))

    @pytest.mark.asyncio
    async def test_extraction_failure_persists_nothing(self, service, extractor, store) -> None:
        extractor.extract.side_effect = ExtractionError(stage="extract")

        with pytest.raises(ExtractionError):
            await service.ingest(_upload())

        store.insert_document.assert_not_awaited()


class TestIngest:
    @pytest.mark.asyncio
    async def test_happy_path(self, service, store, embedder) -> None:
        result = await service.ingest(_upload())

        assert result.title == "Install Guide"
        assert result.page_count == 2
        assert result.chunk_count == 3
        assert result.ingestion_time >= 0

        meta = store.insert_document.await_args.args[0]
        assert meta.filename == "Install Guide.pdf"
        assert meta.file_size_bytes == len(_PDF_BYTES)
        assert meta.content == _extraction().text
        assert result.document_id == meta.id

        embedder.embed.assert_awaited_once_with(
            ["aaaaaaaaaa", "aa\n\nbbbbbb", "bbbbbb"]
        )

    @pytest.mark.asyncio
    async def test_chunk_records_carry_index_and_page(self, service, store) -> None:
        await service.ingest(_upload())

        document_id, records = store.insert_chunks.await_args.args
        assert [r.chunk_index for r in records] == [0, 1, 2]
        # chunk 1 starts at offset 10 (page 1), chunk 2 at offset 20 (page 2)
        assert [r.page_number for r in records] == [1, 1, 2]
        assert records[2].embedding == [2.0, 1.0]

    @pytest.mark.asyncio
    async def test_embedding_failure_rolls_back(self, service, store, embedder) -> None:
        embedder.embed.side_effect = ProviderError("boom", provider_name="openai")

        with pytest.raises(ProviderError) as exc_info:
            await service.ingest(_upload())

        assert exc_info.value.stage == "embed"
        store.insert_chunks.assert_not_awaited()
        document_id = store.insert_document.await_args.args[0].id
        store.delete_document.assert_awaited_once_with(document_id)

    @pytest.mark.asyncio
    async def test_chunk_store_failure_rolls_back(self, service, store) -> None:
        store.insert_chunks.side_effect = StorageError("chroma down")

        with pytest.raises(StorageError) as exc_info:
            await service.ingest(_upload())

        assert exc_info.value.stage == "store"
        store.delete_document.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_rollback_failure_keeps_original_error(self, service, store, embedder) -> None:
        embedder.embed.side_effect = ProviderError("embed failed")
        store.delete_document.side_effect = StorageError("cleanup failed")

        with pytest.raises(ProviderError, match="embed failed"):
            await service.ingest(_upload())

    @pytest.mark.asyncio
    async def test_document_insert_failure_tagged_store(self, service, store) -> None:
        store.insert_document.side_effect = StorageError("sqlite locked")

        with pytest.raises(StorageError) as exc_info:
            await service.ingest(_upload())

        assert exc_info.value.stage == "store"
        store.delete_document.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_ingest_path(self, service, tmp_path) -> None:
        pdf_path = tmp_path / "handbook.pdf"
        pdf_path.write_bytes(_PDF_BYTES)

        result = await service.ingest_path(pdf_path)

        assert result.title == "handbook"

    @pytest.mark.asyncio
    async def test_delete_document_delegates(self, service, store) -> None:
        assert await service.delete_document("doc-1") is True
        store.delete_document.assert_awaited_once_with("doc-1")


class TestCancellationAndLocking:
    """Runs against the real ChromaDB/SQLite stores from conftest."""

    @staticmethod
    def _service(extractor, vector_store, embed) -> IngestionService:
        embedder = MagicMock(spec=IEmbeddingProvider)
        embedder.embed = AsyncMock(side_effect=embed)
        return IngestionService(
            extractor=extractor,
            chunker=TextChunker(chunk_size=10),
            embedding_provider=embedder,
            vector_store=vector_store,
        )

    @pytest.mark.asyncio
    async def test_cancelled_ingest_removes_document(self, extractor, vector_store) -> None:
        embedding_started = asyncio.Event()

        async def _hang(texts: list[str]) -> list[list[float]]:
            embedding_started.set()
            await asyncio.sleep(3600)
            return []

        service = self._service(extractor, vector_store, _hang)
        task = asyncio.create_task(service.ingest(_upload()))
        await embedding_started.wait()
        assert len(await vector_store.list_documents()) == 1

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert await vector_store.list_documents() == []
        assert await vector_store.count_chunks() == 0

    @pytest.mark.asyncio
    async def test_timed_out_ingest_removes_document(self, extractor, vector_store) -> None:
        async def _slow(texts: list[str]) -> list[list[float]]:
            await asyncio.sleep(3600)
            return []

        service = self._service(extractor, vector_store, _slow)

        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(service.ingest(_upload()), timeout=0.2)

        assert await vector_store.list_documents() == []

    @pytest.mark.asyncio
    async def test_delete_waits_for_inflight_ingest(self, extractor, vector_store) -> None:
        embedding_started = asyncio.Event()
        release = asyncio.Event()

        async def _blocked(texts: list[str]) -> list[list[float]]:
            embedding_started.set()
            await release.wait()
            return [[float(i), 1.0] for i in range(len(texts))]

        service = self._service(extractor, vector_store, _blocked)
        ingest_task = asyncio.create_task(service.ingest(_upload()))
        await embedding_started.wait()
        [document] = await vector_store.list_documents()

        delete_task = asyncio.create_task(service.delete_document(document.id))
        await asyncio.sleep(0.05)
        assert not delete_task.done()

        release.set()
        result = await ingest_task
        deleted = await delete_task

        # The chunks were stored (insert_chunks rejects unknown documents),
        # then the delete removed them together with the row.
        assert result.chunk_count == 3
        assert deleted is True
        assert await vector_store.count_chunks(document.id) == 0
        assert await vector_store.list_documents() == []
