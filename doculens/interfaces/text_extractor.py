"""Abstract base class for format-specific text extractors.

Each extractor turns a file path into either one plain-text string
(TXT, DOCX) or an ordered list of ``(page_number, text)`` pairs (PDF).
Keeping the parsing library behind this seam means PyMuPDF or
python-docx can be swapped without touching the chunker or the
reconciliation logic.

Failure contract: extraction never raises for a bad file.  Implementations
log the problem and return an empty result so one corrupt document cannot
abort a directory scan.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path


# Concrete implementations:
#   TxtExtractor, DocxExtractor, PdfExtractor
# Located in: doculens/services/ingestion/extractors/
class ITextExtractor(ABC):
    """Contract for converting one document file into plain text."""

    #: Lower-case file suffixes (with the dot) this extractor handles.
    supported_extensions: frozenset[str] = frozenset()

    def supports(self, path: Path) -> bool:
        return path.suffix.lower() in self.supported_extensions

    @abstractmethod
    def can_process(self, path: Path) -> bool:
        """Cheap open-and-sniff check run during discovery."""

    @abstractmethod
    def extract_text(self, path: Path) -> str:
        """Return the whole document as one string (``""`` on failure)."""

    @abstractmethod
    def extract_pages(self, path: Path) -> list[tuple[int, str]]:
        """Return ``(page_number, text)`` pairs in document order (``[]`` on failure)."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return the parsing backend name, e.g. ``"pymupdf"``."""
