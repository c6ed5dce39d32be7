"""Retrieval-augmented question answering over the uploaded documents.

Data flow for one question:

  1. EMBED     -- the question goes through the same embedding model that
                  indexed the chunks.
  2. RETRIEVE  -- similarity search, keeping matches at or above the
                  threshold (0.7), at most ``match_count`` (5) of them.
  3. CONTEXT   -- matched chunk texts, best first, separated by blank lines.
  4. GENERATE  -- system instructions + context, the last few conversation
                  turns, then the question, in a single completion call.

A failing search degrades to "no context" rather than failing the request.
With no context at all the model is still called once, but the prompt
carries an explicit no-context marker so the reply admits the documentation
does not cover the question instead of drawing on general knowledge.
"""

from __future__ import annotations

import structlog

from src.interfaces.embedding_provider import IEmbeddingProvider
from src.interfaces.llm_provider import ILLMProvider
from src.interfaces.vector_store_provider import IVectorStoreProvider
from src.models.document import ConversationTurn, QAAnswer, SearchMatch, Source
from src.utils.errors import DocChatError, StorageError, ValidationError
from src.utils.logging import get_logger

logger: structlog.BoundLogger = get_logger(__name__)

NO_CONTEXT_MARKER = "No specific documentation context available."


class QAService:
    """Answers questions strictly from retrieved document chunks.

    Parameters
    ----------
    embedding_provider:
        Embeds the question; must be the provider used at ingestion.
    vector_store:
        Source of context chunks.
    llm:
        Completion provider.
    match_threshold:
        Minimum cosine similarity for a chunk to be used as context.
    match_count:
        Maximum number of chunks used as context.
    history_turns:
        How many of the most recent conversation turns go into the prompt.
    temperature, max_tokens:
        Completion sampling parameters.
    """

    _SYSTEM_PROMPT = (
        "You are a documentation assistant. Answer the user's question using only "
        "the documentation excerpts below.\n\n"
        "Guidelines:\n"
        "- Base your answer strictly on the excerpts; do not use outside knowledge\n"
        "- If the excerpts do not contain enough information, say so plainly\n"
        "- Be concise and specific, quoting the documentation where it helps\n\n"
        "Documentation excerpts:\n"
        "{context}"
    )

    def __init__(
        self,
        embedding_provider: IEmbeddingProvider,
        vector_store: IVectorStoreProvider,
        llm: ILLMProvider,
        match_threshold: float = 0.7,
        match_count: int = 5,
        history_turns: int = 6,
        temperature: float = 0.7,
        max_tokens: int = 1000,
    ) -> None:
        self._embedding_provider = embedding_provider
        self._vector_store = vector_store
        self._llm = llm
        self._match_threshold = match_threshold
        self._match_count = match_count
        self._history_turns = history_turns
        self._temperature = temperature
        self._max_tokens = max_tokens

    async def answer(
        self,
        question: str,
        conversation_history: list[ConversationTurn] | None = None,
    ) -> QAAnswer:
        """Answer *question* from the indexed documents.

        Raises
        ------
        ValidationError
            If the question is empty or only whitespace.
        ProviderError
            If embedding the question or the completion call fails.
        """
        if not question or not question.strip():
            raise ValidationError(message="Question is required", stage="validate")

        try:
            query_embedding = await self._embedding_provider.embed_single(question)
        except DocChatError as exc:
            raise exc.with_stage("embed")

        matches = await self._retrieve(query_embedding)
        if matches:
            context = "\n\n".join(m.content for m in matches)
        else:
            logger.info("qa_no_context", question_length=len(question))
            context = NO_CONTEXT_MARKER
        history = self._recent_history(conversation_history)

        try:
            answer_text = await self._llm.complete(
                system_prompt=self._SYSTEM_PROMPT.format(context=context),
                user_prompt=question,
                temperature=self._temperature,
                max_tokens=self._max_tokens,
                history=history,
            )
        except DocChatError as exc:
            raise exc.with_stage("complete")

        sources = [
            Source(
                document_id=m.document_id,
                page_number=m.page_number,
                chunk_index=m.chunk_index,
                similarity=m.similarity,
            )
            for m in matches
        ]
        logger.info(
            "qa_answered",
            question_length=len(question),
            context_chunks=len(matches),
            history_turns=len(history),
            top_similarity=matches[0].similarity if matches else None,
            provider=self._llm.get_provider_name(),
        )
        return QAAnswer(answer=answer_text, sources=sources)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _retrieve(self, query_embedding: list[float]) -> list[SearchMatch]:
        try:
            matches = await self._vector_store.search(
                query_embedding,
                match_threshold=self._match_threshold,
                match_count=self._match_count,
            )
        except StorageError as exc:
            logger.warning("qa_search_failed", error=str(exc))
            return []
        return sorted(matches, key=lambda m: m.similarity, reverse=True)

    def _recent_history(
        self, conversation_history: list[ConversationTurn] | None
    ) -> list[ConversationTurn]:
        if not conversation_history or self._history_turns <= 0:
            return []
        return list(conversation_history[-self._history_turns :])
