"""PDF extractor with layout-aware block segmentation, using PyMuPDF (fitz).

For every page PyMuPDF yields words with their bounding boxes and the
block / line they were segmented into.  Words are regrouped into reading
order text blocks (each block's lines joined by single spaces), blocks are
joined with blank lines to form the page text, and the page text is
grouped into paragraphs of roughly ``paragraph_max_tokens`` tokens by
:meth:`TextChunker.split_paragraphs`.

``extract_pages`` therefore returns several ``(page_number, paragraph)``
pairs per page; each becomes one chunk.
"""

from __future__ import annotations

from pathlib import Path

import fitz  # PyMuPDF -- the "fitz" import name is a PyMuPDF convention
import structlog

from doculens.interfaces.text_extractor import ITextExtractor
from doculens.services.ingestion.chunker import TextChunker

logger = structlog.get_logger(logger_name=__name__)

# Positions inside the tuples returned by ``page.get_text("words")``:
# (x0, y0, x1, y1, word, block_no, line_no, word_no)
_WORD, _BLOCK, _LINE = 4, 5, 6


class PdfExtractor(ITextExtractor):
    """Extracts paragraph-grouped text from each PDF page."""

    supported_extensions = frozenset({".pdf"})

    def __init__(self, chunker: TextChunker | None = None) -> None:
        self._chunker = chunker or TextChunker()

    def can_process(self, path: Path) -> bool:
        """The file must open and have at least one page."""
        try:
            doc = fitz.open(str(path))
        except Exception as exc:
            logger.debug("pdf_open_failed", file_path=str(path), error=str(exc))
            return False
        try:
            return len(doc) > 0
        finally:
            doc.close()

    def extract_text(self, path: Path) -> str:
        return "\n\n".join(text for _, text in self._read_pages(path))

    def extract_pages(self, path: Path) -> list[tuple[int, str]]:
        """Return ``(page_number, paragraph)`` pairs in reading order."""
        paragraphs: list[tuple[int, str]] = []
        for page_number, page_text in self._read_pages(path):
            for paragraph in self._chunker.split_paragraphs(page_text):
                paragraphs.append((page_number, paragraph))
        return paragraphs

    def get_provider_name(self) -> str:
        return "pymupdf"

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _read_pages(self, path: Path) -> list[tuple[int, str]]:
        """Return ``(1-based page number, layout text)``; pages without text are skipped."""
        try:
            doc = fitz.open(str(path))
        except Exception as exc:
            logger.error("pdf_extraction_failed", file_path=str(path), error=str(exc))
            return []

        pages: list[tuple[int, str]] = []
        try:
            for page_index in range(len(doc)):
                text = self._layout_text(doc[page_index])
                if text:
                    pages.append((page_index + 1, text))
        except Exception as exc:
            logger.error(
                "pdf_extraction_failed",
                file_path=str(path),
                page=len(pages) + 1,
                error=str(exc),
            )
            return []
        finally:
            doc.close()

        if not pages:
            logger.warning("pdf_no_text_extracted", file_path=str(path))
        return pages

    @staticmethod
    def _layout_text(page) -> str:  # noqa: ANN001
        """Rebuild reading-order blocks from the page's word boxes."""
        words = page.get_text("words", sort=True)

        # block_no -> line_no -> words; dicts keep first-seen (reading) order.
        blocks: dict[int, dict[int, list[str]]] = {}
        for word in words:
            lines = blocks.setdefault(word[_BLOCK], {})
            lines.setdefault(word[_LINE], []).append(word[_WORD])

        block_texts: list[str] = []
        for lines in blocks.values():
            text = " ".join(" ".join(line_words) for line_words in lines.values()).strip()
            if text:
                block_texts.append(text)
        return "\n\n".join(block_texts)
