"""ChromaDB vector store provider adapter.

Wraps ``chromadb.PersistentClient`` to implement :class:`IVectorStoreProvider`.
Chunks and their vectors live in a ChromaDB collection using the cosine
space; Document rows live in the injected :class:`IDocumentStore`.  Fully
local, no external service required.

ChromaDB's client is synchronous, so every collection call runs in a worker
thread via ``asyncio.to_thread`` to keep the event loop responsive.
"""

from __future__ import annotations

import asyncio
import os
from typing import Any

# Disable ChromaDB telemetry before importing chromadb.  ChromaDB's bundled
# PostHog client breaks against newer posthog releases ("capture() takes 1
# positional argument but 3 were given"), so it is switched off three ways:
#   1. ANONYMIZED_TELEMETRY env var
#   2. posthog.disabled = True
#   3. Settings(anonymized_telemetry=False) passed to PersistentClient
os.environ["ANONYMIZED_TELEMETRY"] = "False"

import posthog

posthog.disabled = True

import chromadb
import structlog

from src.interfaces.document_store import IDocumentStore
from src.interfaces.vector_store_provider import IVectorStoreProvider
from src.models.document import ChunkRecord, CorpusStats, Document, DocumentCreate, SearchMatch
from src.utils.errors import DocChatError, StorageError, ValidationError

logger = structlog.get_logger(logger_name=__name__)


class _NoopEmbeddingFunction(chromadb.EmbeddingFunction[list[str]]):
    """No-op embedding function that prevents ChromaDB from loading a model.

    Every vector is computed by the embedding provider and passed in
    explicitly, so ChromaDB's default ONNX model is never needed.
    """

    def __call__(self, input: list[str]) -> list[list[float]]:
        raise NotImplementedError(
            "DocChat uses pre-computed embeddings; "
            "ChromaDB's built-in embedding should never be called."
        )

    def name(self) -> str:
        """Return function name (required by ChromaDB's EmbeddingFunction protocol)."""
        return "noop_precomputed"


class ChromaDBProvider(IVectorStoreProvider):
    """Document + chunk store backed by ChromaDB and a document table.

    Chunk ids are ``"<document_id>:<chunk_index>"`` so re-inserting the
    same chunk (e.g. restoring a snapshot) is an idempotent upsert.
    """

    def __init__(
        self,
        document_store: IDocumentStore,
        persist_directory: str = "./data/chromadb",
        collection_name: str = "docchat_chunks",
        expected_dimension: int = 0,
    ) -> None:
        self._document_store = document_store
        self._persist_directory = persist_directory
        self._collection_name = collection_name
        self._expected_dimension = expected_dimension
        self._client = chromadb.PersistentClient(
            path=persist_directory,
            settings=chromadb.config.Settings(anonymized_telemetry=False),
        )
        # Newer ChromaDB versions reject a different embedding function than
        # the one persisted with the collection; reopen without one then.
        try:
            self._collection = self._client.get_or_create_collection(
                name=collection_name,
                metadata={"hnsw:space": "cosine"},
                embedding_function=_NoopEmbeddingFunction(),
            )
        except ValueError:
            self._collection = self._client.get_or_create_collection(
                name=collection_name,
                metadata={"hnsw:space": "cosine"},
            )

        self._validate_embedding_dimensions()

    # ------------------------------------------------------------------
    # Startup validation
    # ------------------------------------------------------------------

    def _validate_embedding_dimensions(self) -> None:
        """Fail fast if stored vectors disagree with the provider's dimension."""
        if not self._expected_dimension:
            return
        stored_dim = self._stored_dimension()
        if stored_dim and stored_dim != self._expected_dimension:
            logger.error(
                "embedding_dimension_mismatch",
                stored_dim=stored_dim,
                expected_dim=self._expected_dimension,
            )
            raise StorageError(
                message=(
                    f"Embedding dimension mismatch: store has {stored_dim}-dim vectors "
                    f"but the embedding model produces {self._expected_dimension}-dim "
                    f"vectors. Set OPENAI_EMBEDDING_MODEL to the model used to build "
                    f"the store."
                ),
                provider_name=self.get_provider_name(),
            )

    def _stored_dimension(self) -> int:
        if self._collection.count() == 0:
            return 0
        sample = self._collection.peek(limit=1)
        embeddings = sample.get("embeddings") if sample else None
        if embeddings is None or len(embeddings) == 0:
            return 0
        return len(embeddings[0])

    # ------------------------------------------------------------------
    # IVectorStoreProvider implementation
    # ------------------------------------------------------------------

    async def insert_document(self, meta: DocumentCreate) -> Document:
        try:
            return await self._document_store.insert(meta)
        except DocChatError:
            raise
        except Exception as exc:
            raise StorageError(
                message=f"Document insert failed: {exc}",
                provider_name="sqlite",
            ) from exc

    async def insert_chunks(self, document_id: str, records: list[ChunkRecord]) -> int:
        """Upsert embedded chunks for an existing document."""
        if not records:
            return 0

        if await self._document_store.get(document_id) is None:
            raise StorageError(
                message=f"Cannot insert chunks for unknown document {document_id}",
                provider_name=self.get_provider_name(),
            )

        dimensions = {len(r.embedding) for r in records}
        if len(dimensions) != 1:
            raise ValidationError(
                message=f"Mixed embedding dimensions in one batch: {sorted(dimensions)}",
                provider_name=self.get_provider_name(),
            )
        batch_dim = dimensions.pop()
        if batch_dim == 0:
            raise ValidationError(
                message="Embeddings must not be empty",
                provider_name=self.get_provider_name(),
            )

        try:
            stored_dim = await asyncio.to_thread(self._stored_dimension)
        except Exception as exc:
            raise StorageError(
                message=f"ChromaDB inspection failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        if stored_dim and stored_dim != batch_dim:
            raise ValidationError(
                message=(
                    f"Embedding dimension {batch_dim} does not match stored "
                    f"dimension {stored_dim}"
                ),
                provider_name=self.get_provider_name(),
            )

        ids = [self._chunk_id(document_id, r.chunk_index) for r in records]
        metadatas: list[dict[str, Any]] = [
            {
                "document_id": document_id,
                "chunk_index": r.chunk_index,
                "page_number": r.page_number,
            }
            for r in records
        ]
        try:
            await asyncio.to_thread(
                self._collection.upsert,
                ids=ids,
                embeddings=[list(r.embedding) for r in records],
                documents=[r.content for r in records],
                metadatas=metadatas,
            )
        except Exception as exc:
            raise StorageError(
                message=f"ChromaDB insert_chunks failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        logger.info("chromadb_insert_chunks", document_id=document_id, count=len(records))
        return len(records)

    async def search(
        self,
        query_embedding: list[float],
        match_threshold: float,
        match_count: int,
    ) -> list[SearchMatch]:
        """Cosine-similarity search, thresholded, sorted and truncated."""
        if match_count <= 0:
            return []
        try:
            total = await asyncio.to_thread(self._collection.count)
            if total == 0:
                return []
            results = await asyncio.to_thread(
                self._collection.query,
                query_embeddings=[list(query_embedding)],
                n_results=min(match_count, total),
                include=["documents", "metadatas", "distances"],
            )
        except Exception as exc:
            raise StorageError(
                message=f"ChromaDB search failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        if not results["ids"] or not results["ids"][0]:
            return []

        documents = results["documents"][0] if results["documents"] else []
        metadatas = results["metadatas"][0] if results["metadatas"] else []
        distances = results["distances"][0] if results["distances"] else []

        matches: list[SearchMatch] = []
        for text, meta, distance in zip(documents, metadatas, distances, strict=True):
            similarity = 1.0 - float(distance)
            if similarity < match_threshold:
                continue
            matches.append(
                SearchMatch(
                    document_id=str(meta["document_id"]),
                    content=text or "",
                    chunk_index=int(meta["chunk_index"]),
                    page_number=int(meta.get("page_number", 1)),
                    similarity=similarity,
                )
            )

        matches.sort(key=lambda m: m.similarity, reverse=True)
        matches = matches[:match_count]

        logger.info(
            "chromadb_search",
            raw_results=len(documents),
            results_count=len(matches),
            threshold=match_threshold,
            top_score=matches[0].similarity if matches else 0.0,
        )
        return matches

    async def delete_document(self, document_id: str) -> bool:
        """Delete chunks then the row; restore the chunks if the row delete fails."""
        existing = await self._document_store.get(document_id)
        where = {"document_id": document_id}

        try:
            snapshot = await asyncio.to_thread(
                self._collection.get,
                where=where,
                include=["embeddings", "documents", "metadatas"],
            )
            if snapshot["ids"]:
                await asyncio.to_thread(self._collection.delete, where=where)
        except Exception as exc:
            raise StorageError(
                message=f"ChromaDB delete failed for {document_id}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        if existing is None:
            if snapshot["ids"]:
                logger.warning(
                    "chromadb_orphan_chunks_removed",
                    document_id=document_id,
                    count=len(snapshot["ids"]),
                )
            return False

        try:
            await self._document_store.delete(document_id)
        except Exception as exc:
            await self._restore(document_id, snapshot)
            raise StorageError(
                message=f"Document row delete failed for {document_id}: {exc}",
                provider_name="sqlite",
            ) from exc

        logger.info(
            "document_deleted",
            document_id=document_id,
            chunks_removed=len(snapshot["ids"]),
        )
        return True

    async def get_document(self, document_id: str) -> Document | None:
        return await self._document_store.get(document_id)

    async def list_documents(self) -> list[Document]:
        return await self._document_store.list_all()

    async def count_chunks(self, document_id: str | None = None) -> int:
        try:
            if document_id is None:
                return await asyncio.to_thread(self._collection.count)
            found = await asyncio.to_thread(
                self._collection.get,
                where={"document_id": document_id},
                include=["metadatas"],
            )
        except Exception as exc:
            raise StorageError(
                message=f"ChromaDB count failed: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        return len(found["ids"])

    async def get_stats(self) -> CorpusStats:
        return CorpusStats(
            total_documents=await self._document_store.count(),
            total_chunks=await self.count_chunks(),
        )

    def get_provider_name(self) -> str:
        return "chromadb"

    def is_available(self) -> bool:
        """Return ``True`` if the ChromaDB collection is accessible."""
        try:
            self._collection.count()
            return True
        except Exception:
            return False

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _chunk_id(document_id: str, chunk_index: int) -> str:
        return f"{document_id}:{chunk_index}"

    async def _restore(self, document_id: str, snapshot: dict[str, Any]) -> None:
        """Re-insert chunks captured before a failed delete."""
        if not snapshot["ids"]:
            return
        embeddings = snapshot.get("embeddings")
        try:
            await asyncio.to_thread(
                self._collection.upsert,
                ids=list(snapshot["ids"]),
                embeddings=[[float(x) for x in e] for e in embeddings],
                documents=list(snapshot["documents"]),
                metadatas=list(snapshot["metadatas"]),
            )
        except Exception as exc:
            logger.error(
                "chromadb_restore_failed",
                document_id=document_id,
                count=len(snapshot["ids"]),
                error=str(exc),
            )
            return
        logger.warning(
            "chromadb_chunks_restored",
            document_id=document_id,
            count=len(snapshot["ids"]),
        )
