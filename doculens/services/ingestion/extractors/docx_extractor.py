"""Word document extractor using python-docx.

Walks the document body in order.  Paragraphs contribute their run text
with formatting ignored; tables are rendered row by row as

    cell one | cell two | cell three

where a cell holding several paragraphs has them joined by single spaces.
Non-blank blocks are joined with a blank line, giving one document-level
string that the fixed-window chunker cuts further.

Legacy ``.doc`` files are routed here too.  Only those that are really
OOXML packages pass :meth:`DocxExtractor.can_process`; binary Word 97
files fail the sniff and are skipped during discovery.
"""

from __future__ import annotations

from pathlib import Path

import docx
import structlog
from docx.table import Table
from docx.text.paragraph import Paragraph

from doculens.interfaces.text_extractor import ITextExtractor

logger = structlog.get_logger(logger_name=__name__)


class DocxExtractor(ITextExtractor):
    """Extracts body text (paragraphs and tables) from ``.docx`` / ``.doc`` files."""

    supported_extensions = frozenset({".docx", ".doc"})

    def can_process(self, path: Path) -> bool:
        """The package must open and expose a document body."""
        try:
            document = docx.Document(str(path))
        except Exception as exc:
            logger.debug("docx_open_failed", file_path=str(path), error=str(exc))
            return False
        return document.element.body is not None

    def extract_text(self, path: Path) -> str:
        try:
            document = docx.Document(str(path))
            blocks: list[str] = []
            for item in document.iter_inner_content():
                if isinstance(item, Paragraph):
                    text = item.text
                elif isinstance(item, Table):
                    text = self._render_table(item)
                else:
                    continue
                if text.strip():
                    blocks.append(text)
            return "\n\n".join(blocks)
        except Exception as exc:
            logger.error("docx_extraction_failed", file_path=str(path), error=str(exc))
            return ""

    def extract_pages(self, path: Path) -> list[tuple[int, str]]:
        """Word files have no stable page model; the whole body is page 1."""
        text = self.extract_text(path)
        return [(1, text)] if text.strip() else []

    def get_provider_name(self) -> str:
        return "python-docx"

    @staticmethod
    def _render_table(table: Table) -> str:
        rows: list[str] = []
        for row in table.rows:
            cells = [
                " ".join(
                    paragraph.text.strip()
                    for paragraph in cell.paragraphs
                    if paragraph.text.strip()
                )
                for cell in row.cells
            ]
            if any(cells):
                rows.append(" | ".join(cells))
        return "\n".join(rows)
