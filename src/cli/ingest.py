# =============================================================================
# src/cli/ingest.py - CLI Ingest Command (Document Store Management)
# =============================================================================
#
# Standalone CLI for managing the DocChat document store outside the web
# API.  Uses the same component wiring as the server (src/dependencies.py),
# so documents ingested here are immediately searchable through /api/v1/chat.
#
# Supported subcommands:
#
#   pdf       - Ingest a single PDF file
#   directory - Bulk-ingest every *.pdf in a directory, pausing between files
#   list      - List stored documents with page and chunk counts
#   delete    - Delete a document and its chunks (asks for confirmation)
#   stats     - Display document and chunk totals
#
# Usage examples:
#   python -m src.cli.ingest pdf --file ./docs/manual.pdf
#   python -m src.cli.ingest directory --path ./docs --delay 1.0
#   python -m src.cli.ingest list
#   python -m src.cli.ingest delete --id 3f2c... --yes
#   python -m src.cli.ingest stats
# =============================================================================

"""Standalone CLI for building and inspecting the DocChat document store."""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Any

from src.config.settings import Settings
from src.utils.errors import DocChatError
from src.utils.logging import configure_logging


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


async def _handle_pdf(args: argparse.Namespace, components: dict[str, Any]) -> int:
    """Ingest a single PDF file."""
    file_path = Path(args.file)
    if not file_path.is_file():
        print(f"Error: file not found: {file_path}", file=sys.stderr)
        return 1

    print(f"Ingesting PDF: {file_path.name}")
    try:
        result = await components["ingestion_service"].ingest_path(file_path)
    except DocChatError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print("\nIngestion complete:")
    print(f"  Document ID: {result.document_id}")
    print(f"  Title:       {result.title}")
    print(f"  Pages:       {result.page_count}")
    print(f"  Chunks:      {result.chunk_count}")
    print(f"  Time:        {result.ingestion_time:.2f}s")
    return 0


async def _handle_directory(args: argparse.Namespace, components: dict[str, Any]) -> int:
    """Ingest every PDF in a directory, one at a time.

    Failures are reported per file and do not stop the run.  Exit code is
    1 if any file failed.
    """
    directory = Path(args.path)
    if not directory.is_dir():
        print(f"Error: not a directory: {directory}", file=sys.stderr)
        return 1

    pdf_files = sorted(p for p in directory.iterdir() if p.suffix.lower() == ".pdf")
    if not pdf_files:
        print(f"No PDF files found in {directory}")
        return 0

    print(f"Found {len(pdf_files)} PDF file(s) in {directory}\n")
    service = components["ingestion_service"]
    succeeded: list[str] = []
    failed: list[tuple[str, str]] = []

    for index, pdf_path in enumerate(pdf_files):
        print(f"Uploading {pdf_path.name}...")
        try:
            result = await service.ingest_path(pdf_path)
        except DocChatError as exc:
            failed.append((pdf_path.name, str(exc)))
            print(f"  Failed: {exc}")
        else:
            succeeded.append(pdf_path.name)
            print(f"  Success: {result.chunk_count} chunks ({result.document_id})")

        # Pause between uploads to stay under embedding rate limits.
        if args.delay > 0 and index < len(pdf_files) - 1:
            await asyncio.sleep(args.delay)

    print("\nUpload Summary:")
    print(f"  Successful: {len(succeeded)}")
    print(f"  Failed:     {len(failed)}")
    for name, reason in failed:
        print(f"    - {name}: {reason}")
    return 1 if failed else 0


async def _handle_list(components: dict[str, Any]) -> int:
    """List stored documents, newest first."""
    vector_store = components["vector_store"]
    documents = await vector_store.list_documents()
    if not documents:
        print("No documents stored.")
        return 0

    print(f"{'ID':<38} {'Pages':>5} {'Chunks':>6}  Title")
    print("-" * 72)
    for doc in documents:
        chunks = await vector_store.count_chunks(doc.id)
        print(f"{doc.id:<38} {doc.page_count:>5} {chunks:>6}  {doc.title}")
    return 0


async def _handle_delete(args: argparse.Namespace, components: dict[str, Any]) -> int:
    """Delete one document.  Requires confirmation unless --yes is passed."""
    document = await components["vector_store"].get_document(args.id)
    if document is None:
        print(f"Document {args.id} not found.", file=sys.stderr)
        return 1

    if not args.yes:
        confirm = input(f"  Delete '{document.title}' and all its chunks? [y/N] ").strip().lower()
        if confirm not in ("y", "yes"):
            print("  Aborted.")
            return 0

    try:
        removed = await components["ingestion_service"].delete_document(args.id)
    except DocChatError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print(f"  Deleted {document.title}." if removed else "  Already deleted.")
    return 0


async def _handle_stats(components: dict[str, Any]) -> int:
    """Display document and chunk totals."""
    vector_store = components["vector_store"]
    if not vector_store.is_available():
        print("Vector store not available.")
        return 1

    stats = await vector_store.get_stats()
    app_settings: Settings = components["settings"]

    print("Document Store Statistics")
    print("=" * 40)
    print(f"  Documents:        {stats.total_documents}")
    print(f"  Chunks:           {stats.total_chunks}")
    print(f"  Chunk size:       {app_settings.chunk_size} chars")
    print(f"  Embedding model:  {components['embedding_provider'].get_provider_name()}")
    return 0


async def _dispatch(args: argparse.Namespace, app_settings: Settings) -> int:
    # Deferred so ``--help`` does not pay for chromadb / SDK imports.
    from src.dependencies import build_components, initialize_components

    try:
        components = build_components(app_settings)
        await initialize_components(components)
        return await _run_command(args, components)
    except DocChatError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


async def _run_command(args: argparse.Namespace, components: dict[str, Any]) -> int:
    if args.command == "pdf":
        return await _handle_pdf(args, components)
    if args.command == "directory":
        return await _handle_directory(args, components)
    if args.command == "list":
        return await _handle_list(components)
    if args.command == "delete":
        return await _handle_delete(args, components)
    return await _handle_stats(components)


# ---------------------------------------------------------------------------
# Argument parser
# ---------------------------------------------------------------------------


def _build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the ingestion CLI."""
    parser = argparse.ArgumentParser(
        prog="python -m src.cli.ingest",
        description="Manage the DocChat document store.",
    )
    subparsers = parser.add_subparsers(dest="command", help="Ingestion commands")

    # -- pdf --
    pdf_parser = subparsers.add_parser("pdf", help="Ingest a single PDF file")
    pdf_parser.add_argument("--file", required=True, help="Path to the PDF file")

    # -- directory --
    dir_parser = subparsers.add_parser("directory", help="Ingest every PDF in a directory")
    dir_parser.add_argument("--path", required=True, help="Directory path")
    dir_parser.add_argument(
        "--delay",
        type=float,
        default=1.0,
        help="Seconds to wait between files (default: 1.0)",
    )

    # -- list --
    subparsers.add_parser("list", help="List stored documents")

    # -- delete --
    delete_parser = subparsers.add_parser("delete", help="Delete a document")
    delete_parser.add_argument("--id", required=True, help="Document ID")
    delete_parser.add_argument(
        "--yes", "-y", action="store_true", help="Skip confirmation prompt"
    )

    # -- stats --
    subparsers.add_parser("stats", help="Show document and chunk totals")

    return parser


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for the ingestion tool."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    app_settings = Settings()
    configure_logging(log_level=app_settings.log_level, app_env=app_settings.app_env)

    exit_code = asyncio.run(_dispatch(args, app_settings))
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
