"""Plain-text extractor.

Reads ``.txt`` files as UTF-8, with invalid bytes replaced by U+FFFD, and
splits them into paragraphs on blank lines.  Each paragraph is already a
retrieval-sized unit, so TXT content bypasses the fixed-window chunker:
:meth:`TxtExtractor.extract_pages` returns one ``(index, paragraph)`` pair
per paragraph.
"""

from __future__ import annotations

import re
from pathlib import Path

import structlog

from doculens.interfaces.text_extractor import ITextExtractor

logger = structlog.get_logger(logger_name=__name__)

_PARAGRAPH_BREAK = re.compile(r"\r\n\r\n|\n\n")


def split_blank_line_paragraphs(text: str) -> list[str]:
    """Split on ``\\r\\n\\r\\n`` / ``\\n\\n``, trim, and drop empty paragraphs."""
    return [part.strip() for part in _PARAGRAPH_BREAK.split(text) if part.strip()]


class TxtExtractor(ITextExtractor):
    """Extracts UTF-8 text files."""

    supported_extensions = frozenset({".txt"})

    def can_process(self, path: Path) -> bool:
        return True

    def extract_text(self, path: Path) -> str:
        try:
            return path.read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            logger.error("txt_extraction_failed", file_path=str(path), error=str(exc))
            return ""

    def extract_pages(self, path: Path) -> list[tuple[int, str]]:
        """Return ``(1-based index, paragraph)`` for every non-blank paragraph."""
        paragraphs = split_blank_line_paragraphs(self.extract_text(path))
        return [(index + 1, paragraph) for index, paragraph in enumerate(paragraphs)]

    def get_provider_name(self) -> str:
        return "plaintext"
