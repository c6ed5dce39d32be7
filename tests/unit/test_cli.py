"""Unit tests for CLI modules - src.cli.ingest and src.cli.ask."""

from __future__ import annotations

from argparse import Namespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.cli import ask as ask_cli
from src.cli import ingest as ingest_cli
from src.models.document import (
    ConversationTurn,
    CorpusStats,
    Document,
    IngestionResult,
    QAAnswer,
    Source,
)
from src.utils.errors import ExtractionError, ProviderError, StorageError


def _document(doc_id: str = "doc-1", title: str = "guide") -> Document:
    return Document(
        id=doc_id,
        title=title,
        filename=f"{title}.pdf",
        file_size_bytes=100,
        page_count=3,
        content="text",
    )


def _result(title: str = "guide") -> IngestionResult:
    return IngestionResult(
        document_id="doc-1", title=title, chunk_count=2, page_count=3, ingestion_time=0.5
    )


@pytest.fixture
def components(settings_factory) -> dict:
    ingestion = MagicMock()
    ingestion.ingest_path = AsyncMock(return_value=_result())
    ingestion.delete_document = AsyncMock(return_value=True)

    vector_store = MagicMock()
    vector_store.list_documents = AsyncMock(return_value=[_document()])
    vector_store.get_document = AsyncMock(return_value=_document())
    vector_store.count_chunks = AsyncMock(return_value=2)
    vector_store.get_stats = AsyncMock(return_value=CorpusStats(total_documents=1, total_chunks=2))
    vector_store.is_available.return_value = True

    embedding = MagicMock()
    embedding.get_provider_name.return_value = "openai_embedding"

    conversation_store = MagicMock()
    conversation_store.get_recent_messages = AsyncMock(return_value=[])
    conversation_store.append_messages = AsyncMock()

    qa = MagicMock()
    qa.answer = AsyncMock(
        return_value=QAAnswer(
            answer="Alpha is a letter.",
            sources=[Source(document_id="doc-1", page_number=2, chunk_index=1, similarity=0.91)],
        )
    )

    return {
        "settings": settings_factory(),
        "ingestion_service": ingestion,
        "vector_store": vector_store,
        "embedding_provider": embedding,
        "conversation_store": conversation_store,
        "qa_service": qa,
    }


# ======================================================================
# Ingest CLI
# ======================================================================


class TestIngestParser:
    def test_directory_defaults(self) -> None:
        args = ingest_cli._build_parser().parse_args(["directory", "--path", "docs"])
        assert args.command == "directory"
        assert args.delay == 1.0

    def test_delete_yes_flag(self) -> None:
        args = ingest_cli._build_parser().parse_args(["delete", "--id", "abc", "-y"])
        assert args.id == "abc"
        assert args.yes is True

    def test_no_command_exits_with_help(self) -> None:
        with pytest.raises(SystemExit) as exc_info:
            ingest_cli.main([])
        assert exc_info.value.code == 1


class TestIngestHandlers:
    @pytest.mark.asyncio
    async def test_pdf(self, components, tmp_path, capsys) -> None:
        pdf_path = tmp_path / "guide.pdf"
        pdf_path.write_bytes(b"%PDF-1.7")

        code = await ingest_cli._handle_pdf(Namespace(file=str(pdf_path)), components)

        assert code == 0
        assert "Chunks:      2" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_pdf_missing_file(self, components, tmp_path, capsys) -> None:
        code = await ingest_cli._handle_pdf(Namespace(file=str(tmp_path / "nope.pdf")), components)

        assert code == 1
        assert "file not found" in capsys.readouterr().err

    @pytest.mark.asyncio
    async def test_pdf_ingestion_error(self, components, tmp_path, capsys) -> None:
        pdf_path = tmp_path / "scan.pdf"
        pdf_path.write_bytes(b"%PDF-1.7")
        components["ingestion_service"].ingest_path.side_effect = ExtractionError()

        code = await ingest_cli._handle_pdf(Namespace(file=str(pdf_path)), components)

        assert code == 1
        assert "Could not extract" in capsys.readouterr().err

    @pytest.mark.asyncio
    async def test_directory_reports_success_and_failure(
        self, components, tmp_path, capsys
    ) -> None:
        for name in ("a.pdf", "b.PDF", "c.pdf", "notes.txt"):
            (tmp_path / name).write_bytes(b"%PDF-1.7")
        components["ingestion_service"].ingest_path.side_effect = [
            _result("a"),
            ProviderError("embedding failed"),
            _result("c"),
        ]

        code = await ingest_cli._handle_directory(
            Namespace(path=str(tmp_path), delay=0.0), components
        )

        out = capsys.readouterr().out
        assert code == 1
        assert components["ingestion_service"].ingest_path.await_count == 3
        assert "Successful: 2" in out
        assert "Failed:     1" in out
        assert "b.PDF: embedding failed" in out

    @pytest.mark.asyncio
    async def test_directory_sleeps_between_files(self, components, tmp_path) -> None:
        for name in ("a.pdf", "b.pdf"):
            (tmp_path / name).write_bytes(b"%PDF-1.7")

        with patch("src.cli.ingest.asyncio.sleep", new=AsyncMock()) as sleep:
            code = await ingest_cli._handle_directory(
                Namespace(path=str(tmp_path), delay=2.5), components
            )

        assert code == 0
        sleep.assert_awaited_once_with(2.5)

    @pytest.mark.asyncio
    async def test_directory_without_pdfs(self, components, tmp_path, capsys) -> None:
        code = await ingest_cli._handle_directory(
            Namespace(path=str(tmp_path), delay=0.0), components
        )
        assert code == 0
        assert "No PDF files" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_list(self, components, capsys) -> None:
        code = await ingest_cli._handle_list(components)

        out = capsys.readouterr().out
        assert code == 0
        assert "doc-1" in out
        assert "guide" in out

    @pytest.mark.asyncio
    async def test_delete_confirmed_by_flag(self, components, capsys) -> None:
        code = await ingest_cli._handle_delete(Namespace(id="doc-1", yes=True), components)

        assert code == 0
        components["ingestion_service"].delete_document.assert_awaited_once_with("doc-1")
        assert "Deleted guide" in capsys.readouterr().out

    @pytest.mark.asyncio
    async def test_delete_aborted_at_prompt(self, components) -> None:
        with patch("builtins.input", return_value="n"):
            code = await ingest_cli._handle_delete(Namespace(id="doc-1", yes=False), components)

        assert code == 0
        components["ingestion_service"].delete_document.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_delete_unknown_document(self, components) -> None:
        components["vector_store"].get_document.return_value = None

        code = await ingest_cli._handle_delete(Namespace(id="missing", yes=True), components)

        assert code == 1

    @pytest.mark.asyncio
    async def test_stats(self, components, capsys) -> None:
        code = await ingest_cli._handle_stats(components)

        out = capsys.readouterr().out
        assert code == 0
        assert "Documents:        1" in out
        assert "Chunks:           2" in out


# ======================================================================
# Ask CLI
# ======================================================================


class TestAskCli:
    def test_format_answer_lists_sources(self) -> None:
        text = ask_cli.format_answer(
            QAAnswer(
                answer="Because.",
                sources=[Source(document_id="doc-1", page_number=4, chunk_index=3, similarity=0.8)],
            ),
            titles={"doc-1": "manual"},
        )
        assert text.splitlines()[0] == "Because."
        assert "manual, page 4, chunk 3 (similarity 0.80)" in text

    def test_format_answer_without_sources(self) -> None:
        assert ask_cli.format_answer(QAAnswer(answer="No idea.")) == "No idea."

    @pytest.mark.asyncio
    async def test_ask_prints_answer(self, components, capsys) -> None:
        code = await ask_cli._ask(Namespace(question="What is alpha?", conversation=None), components)

        out = capsys.readouterr().out
        assert code == 0
        assert "Alpha is a letter." in out
        assert "guide, page 2" in out
        components["conversation_store"].append_messages.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_ask_continues_conversation(self, components) -> None:
        history = [ConversationTurn(role="user", content="earlier")]
        components["conversation_store"].get_recent_messages.return_value = history

        await ask_cli._ask(Namespace(question="And beta?", conversation="c-1"), components)

        components["qa_service"].answer.assert_awaited_once_with("And beta?", history)
        saved = components["conversation_store"].append_messages.await_args.args[1]
        assert [t.role for t in saved] == ["user", "assistant"]

    @pytest.mark.asyncio
    async def test_ask_error_exit_code(self, components, capsys) -> None:
        components["qa_service"].answer.side_effect = ProviderError("down", provider_name="openai")

        code = await ask_cli._ask(Namespace(question="q", conversation=None), components)

        assert code == 1
        assert "[openai] down" in capsys.readouterr().err

    @pytest.mark.asyncio
    async def test_ask_survives_history_store_failure(self, components, capsys) -> None:
        store = components["conversation_store"]
        store.get_recent_messages.side_effect = StorageError("database is locked")
        store.append_messages.side_effect = StorageError("database is locked")

        args = Namespace(question="What is alpha?", conversation="c-1")
        code = await ask_cli._ask(args, components)

        assert code == 0
        assert "Alpha is a letter." in capsys.readouterr().out
        components["qa_service"].answer.assert_awaited_once_with("What is alpha?", [])


class TestIngestDispatch:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("command", ["list", "stats"])
    async def test_storage_error_exits_with_code_1(self, components, capsys, command) -> None:
        vector_store = components["vector_store"]
        vector_store.list_documents.side_effect = StorageError("disk I/O error")
        vector_store.get_stats.side_effect = StorageError("disk I/O error")

        with (
            patch("src.dependencies.build_components", return_value=components),
            patch("src.dependencies.initialize_components", new=AsyncMock()),
        ):
            code = await ingest_cli._dispatch(Namespace(command=command), components["settings"])

        assert code == 1
        assert "disk I/O error" in capsys.readouterr().err
