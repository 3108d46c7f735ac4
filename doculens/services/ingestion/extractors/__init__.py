"""Format-specific text extractors.

- **TxtExtractor**  -- ``.txt``, UTF-8, split into blank-line paragraphs
- **DocxExtractor** -- ``.docx`` / ``.doc`` via python-docx (paragraphs + tables)
- **PdfExtractor**  -- ``.pdf`` via PyMuPDF word boxes, grouped into paragraphs

All implement :class:`~doculens.interfaces.text_extractor.ITextExtractor`.
"""

from doculens.services.ingestion.extractors.docx_extractor import DocxExtractor
from doculens.services.ingestion.extractors.pdf_extractor import PdfExtractor
from doculens.services.ingestion.extractors.txt_extractor import (
    TxtExtractor,
    split_blank_line_paragraphs,
)

__all__ = [
    "DocxExtractor",
    "PdfExtractor",
    "TxtExtractor",
    "split_blank_line_paragraphs",
]
