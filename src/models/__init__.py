"""DocChat domain models - re-exports all public model classes.

Other parts of the codebase can import from ``src.models`` directly
(e.g. ``from src.models import Document``) instead of the submodule.
"""

from __future__ import annotations

from src.models.document import (
    ChunkRecord,
    ConversationTurn,
    CorpusStats,
    Document,
    DocumentChunk,
    DocumentCreate,
    ExtractionResult,
    IngestionResult,
    PageSpan,
    QAAnswer,
    SearchMatch,
    Source,
    UploadedFile,
)

__all__ = [
    "ChunkRecord",
    "ConversationTurn",
    "CorpusStats",
    "Document",
    "DocumentChunk",
    "DocumentCreate",
    "ExtractionResult",
    "IngestionResult",
    "PageSpan",
    "QAAnswer",
    "SearchMatch",
    "Source",
    "UploadedFile",
]
