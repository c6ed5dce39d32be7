"""Text extraction from uploaded PDF bytes.

Reads PDFs using PyMuPDF (fitz), extracts text page-by-page in reading
order, and joins the pages with a blank line.  The ``[start, end)`` span of
every page in the joined text is recorded so downstream chunks can be
attributed to the page they start on.

Two strategies, tried in order:

1. **structural** -- the PDF's own text layer (``page.get_text("text")``).
2. **ocr** -- only when enabled and the structural pass came up short:
   each page is rendered to PNG and read by a vision-capable LLM.
"""

from __future__ import annotations

import asyncio

import fitz  # PyMuPDF -- the "fitz" import name is a PyMuPDF convention
import structlog

from src.interfaces.llm_provider import ILLMProvider
from src.models.document import ExtractionResult, PageSpan
from src.utils.errors import DocChatError, ExtractionError

logger = structlog.get_logger(logger_name=__name__)

_PAGE_SEPARATOR = "\n\n"

_OCR_PROMPT = (
    "Transcribe all readable text on this document page exactly as written, "
    "in reading order. Return only the text, with no commentary."
)


class PDFTextExtractor:
    """Extracts plain text and page spans from PDF bytes.

    Parameters
    ----------
    min_chars:
        Minimum trimmed text length for an extraction to count as usable.
    vision_provider:
        Optional LLM used for the OCR fallback.  Ignored unless
        *ocr_fallback_enabled* is set and it reports vision support.
    ocr_fallback_enabled:
        Whether to try OCR when the text layer is too thin.
    ocr_max_pages:
        Upper bound on pages rendered and sent to the vision model.
    ocr_dpi:
        Render resolution for OCR page images.
    """

    def __init__(
        self,
        min_chars: int = 50,
        vision_provider: ILLMProvider | None = None,
        ocr_fallback_enabled: bool = False,
        ocr_max_pages: int = 20,
        ocr_dpi: int = 150,
    ) -> None:
        self._min_chars = min_chars
        self._vision_provider = vision_provider
        self._ocr_enabled = ocr_fallback_enabled
        self._ocr_max_pages = ocr_max_pages
        self._ocr_dpi = ocr_dpi

    async def extract(self, data: bytes) -> ExtractionResult:
        """Extract text from *data*.

        Raises
        ------
        ExtractionError
            If the bytes are not a readable PDF, or if no strategy yields at
            least ``min_chars`` characters after trimming.
        """
        page_texts = await asyncio.to_thread(self._read_text_layer, data)
        result = self._assemble(page_texts, method="structural")

        if self._is_sufficient(result):
            logger.info(
                "pdf_text_extracted",
                method=result.method,
                pages=result.page_count,
                chars=len(result.text),
            )
            return result

        logger.warning(
            "pdf_text_layer_insufficient",
            pages=result.page_count,
            chars=len(result.text.strip()),
            min_chars=self._min_chars,
        )

        if self._ocr_available():
            ocr_result = await self._ocr_pages(data, result.page_count)
            if self._is_sufficient(ocr_result):
                logger.info(
                    "pdf_text_extracted",
                    method=ocr_result.method,
                    pages=ocr_result.page_count,
                    chars=len(ocr_result.text),
                )
                return ocr_result

        raise ExtractionError(
            message=(
                "Could not extract sufficient text from PDF "
                f"(found {len(result.text.strip())} characters, "
                f"need at least {self._min_chars})"
            ),
            stage="extract",
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _is_sufficient(self, result: ExtractionResult) -> bool:
        return len(result.text.strip()) >= self._min_chars

    def _ocr_available(self) -> bool:
        return (
            self._ocr_enabled
            and self._vision_provider is not None
            and self._vision_provider.is_available()
            and self._vision_provider.supports_vision()
        )

    @staticmethod
    def _open(data: bytes) -> fitz.Document:
        try:
            doc = fitz.open(stream=data, filetype="pdf")
        except Exception as exc:
            raise ExtractionError(
                message=f"File is not a readable PDF: {exc}",
                provider_name="pymupdf",
                stage="extract",
            ) from exc
        if doc.needs_pass:
            doc.close()
            raise ExtractionError(
                message="PDF is password protected",
                provider_name="pymupdf",
                stage="extract",
            )
        return doc

    def _read_text_layer(self, data: bytes) -> list[str]:
        """Return one text string per page (empty for pages without text)."""
        doc = self._open(data)
        try:
            return [page.get_text("text").strip() for page in doc]
        finally:
            doc.close()

    def _render_pages(self, data: bytes) -> list[bytes]:
        doc = self._open(data)
        try:
            images: list[bytes] = []
            for index, page in enumerate(doc):
                if index >= self._ocr_max_pages:
                    break
                images.append(page.get_pixmap(dpi=self._ocr_dpi).tobytes("png"))
            return images
        finally:
            doc.close()

    async def _ocr_pages(self, data: bytes, page_count: int) -> ExtractionResult:
        assert self._vision_provider is not None
        images = await asyncio.to_thread(self._render_pages, data)
        page_texts: list[str] = []
        for page_number, image in enumerate(images, start=1):
            try:
                text = await self._vision_provider.vision_extract(image, _OCR_PROMPT)
            except DocChatError as exc:
                raise exc.with_stage("extract")
            page_texts.append(text.strip())
            logger.debug("pdf_ocr_page", page=page_number, chars=len(text))

        result = self._assemble(page_texts, method="ocr")
        return result.model_copy(update={"page_count": page_count})

    @staticmethod
    def _assemble(page_texts: list[str], method: str) -> ExtractionResult:
        """Join non-empty pages with a blank line and record each page's span."""
        parts: list[str] = []
        spans: list[PageSpan] = []
        offset = 0
        for page_number, text in enumerate(page_texts, start=1):
            if not text:
                continue
            if parts:
                offset += len(_PAGE_SEPARATOR)
            spans.append(PageSpan(page_number=page_number, start=offset, end=offset + len(text)))
            parts.append(text)
            offset += len(text)

        return ExtractionResult(
            text=_PAGE_SEPARATOR.join(parts),
            page_count=len(page_texts),
            pages=spans,
            method=method,
        )
