"""PDF ingestion pipeline for the DocChat knowledge base.

Pipeline stages overview:

1. **Extract** (pdf_extractor.py / PDFTextExtractor) -- PDF bytes to plain
   text with per-page spans; optional vision-LLM OCR fallback.

2. **Chunk** (chunker.py / TextChunker) -- fixed-size, non-overlapping
   character windows (1000 by default).

3. **Embed** (via IEmbeddingProvider) -- one vector per chunk.

4. **Store** (via IVectorStoreProvider) -- document row plus embedded
   chunks, written under a per-document lock.

IngestionService orchestrates the stages and rolls back a partially
ingested document on failure.
"""

from src.services.ingestion.chunker import TextChunker
from src.services.ingestion.ingestion_service import IngestionService
from src.services.ingestion.pdf_extractor import PDFTextExtractor

__all__ = [
    "IngestionService",
    "PDFTextExtractor",
    "TextChunker",
]
