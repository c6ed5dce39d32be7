"""Fixed-size character chunking.

Splits extracted document text into contiguous, non-overlapping windows of
``chunk_size`` characters.  Chunk *i* covers offsets
``[i * chunk_size, (i + 1) * chunk_size)`` of the input, so concatenating
the chunks in order reproduces the text exactly and a chunk's start offset
is always ``i * chunk_size`` (used to attribute chunks to PDF pages).

Boundaries do not respect words or sentences; the same text always yields
the same chunks.
"""

from __future__ import annotations

import structlog

logger = structlog.get_logger(logger_name=__name__)


class TextChunker:
    """Splits text into fixed-size character chunks.

    Parameters
    ----------
    chunk_size:
        Default window size in characters (default 1000).
    """

    def __init__(self, chunk_size: int = 1000) -> None:
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        self._chunk_size = chunk_size

    @property
    def chunk_size(self) -> int:
        return self._chunk_size

    def chunk(self, text: str, size: int | None = None) -> list[str]:
        """Split *text* into ``ceil(len(text) / size)`` contiguous chunks.

        Every chunk but the last has exactly *size* characters; the last has
        between 1 and *size*.  Empty text yields ``[]``.

        Raises
        ------
        ValueError
            If *size* is not positive.
        """
        window = self._chunk_size if size is None else size
        if window <= 0:
            raise ValueError(f"chunk size must be positive, got {window}")

        chunks = [text[start : start + window] for start in range(0, len(text), window)]

        logger.debug(
            "text_chunked",
            text_length=len(text),
            chunk_size=window,
            chunks=len(chunks),
        )
        return chunks

    def offsets(self, text: str, size: int | None = None) -> list[int]:
        """Return the start offset of every chunk :meth:`chunk` would produce."""
        window = self._chunk_size if size is None else size
        if window <= 0:
            raise ValueError(f"chunk size must be positive, got {window}")
        return list(range(0, len(text), window))
