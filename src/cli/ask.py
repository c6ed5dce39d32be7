"""Ask a question against the document store from the command line.

Usage::

    python -m src.cli.ask "How do I rotate the API keys?"
    python -m src.cli.ask --conversation 9b1e... "And for staging?"

Prints the answer followed by one line per source chunk.  With
``--conversation`` the question continues (and extends) that stored
conversation the way the ``/api/v1/chat`` endpoint does: a history store
failure is logged and the question is answered without it.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from typing import Any

from src.config.settings import Settings
from src.models.document import ConversationTurn, QAAnswer
from src.utils.errors import DocChatError, StorageError
from src.utils.logging import configure_logging, get_logger

logger = get_logger(__name__)


def format_answer(result: QAAnswer, titles: dict[str, str] | None = None) -> str:
    """Render an answer and its sources as plain text."""
    lines = [result.answer]
    if result.sources:
        lines.append("")
        lines.append("Sources:")
        for source in result.sources:
            title = (titles or {}).get(source.document_id, source.document_id)
            lines.append(
                f"  - {title}, page {source.page_number}, "
                f"chunk {source.chunk_index} (similarity {source.similarity:.2f})"
            )
    return "\n".join(lines)


async def _ask(args: argparse.Namespace, components: dict[str, Any]) -> int:
    app_settings: Settings = components["settings"]
    conversation_store = components["conversation_store"]

    history: list[ConversationTurn] = []
    if args.conversation:
        try:
            history = await conversation_store.get_recent_messages(
                args.conversation, limit=app_settings.conversation_history_limit
            )
        except StorageError as exc:
            logger.warning(
                "conversation_history_unavailable",
                conversation_id=args.conversation,
                error=str(exc),
            )

    try:
        result = await components["qa_service"].answer(args.question, history)
    except DocChatError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    if args.conversation:
        try:
            await conversation_store.append_messages(
                args.conversation,
                [
                    ConversationTurn(role="user", content=args.question),
                    ConversationTurn(role="assistant", content=result.answer),
                ],
            )
        except StorageError as exc:
            logger.warning(
                "conversation_save_failed",
                conversation_id=args.conversation,
                error=str(exc),
            )

    titles: dict[str, str] = {}
    for source in result.sources:
        if source.document_id in titles:
            continue
        try:
            document = await components["vector_store"].get_document(source.document_id)
        except StorageError as exc:
            logger.warning(
                "source_title_unavailable",
                document_id=source.document_id,
                error=str(exc),
            )
            document = None
        titles[source.document_id] = document.title if document else source.document_id

    print(format_answer(result, titles))
    return 0


async def _run(args: argparse.Namespace, app_settings: Settings) -> int:
    from src.dependencies import build_components, initialize_components

    components = build_components(app_settings)
    await initialize_components(components)
    return await _ask(args, components)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m src.cli.ask",
        description="Ask a question about the uploaded documents.",
    )
    parser.add_argument("question", help="The question to ask")
    parser.add_argument(
        "--conversation",
        default=None,
        help="Conversation ID to continue (history is loaded and extended)",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for asking questions."""
    args = _build_parser().parse_args(argv)
    app_settings = Settings()
    configure_logging(log_level=app_settings.log_level, app_env=app_settings.app_env)
    sys.exit(asyncio.run(_run(args, app_settings)))


if __name__ == "__main__":
    main()
