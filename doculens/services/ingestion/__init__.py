"""Document ingestion pipeline for the DocuLens knowledge base.

Pipeline stages overview:

1. **Extract** (extractors/) -- format-specific readers turn TXT, DOCX and
   PDF files into plain text or (page, text) pairs.

2. **Chunk** (chunker.py / TextChunker) -- fixed character windows with
   overlap for DOCX, layout paragraphs for PDF.  TXT paragraphs are used
   as they are.

3. **Scan** (document_source.py / DocumentDirectorySource) -- finds new,
   modified and deleted files and emits per-file progress events.

4. **Sync** (data_ingestor.py / DataIngestor) -- writes and deletes chunk
   and document records so the vector store matches the directory.

5. **Coordinate** (ingestion_manager.py / IngestionManager) -- keeps at
   most one run active.
"""

from doculens.services.ingestion.chunker import TextChunker
from doculens.services.ingestion.data_ingestor import DataIngestor
from doculens.services.ingestion.document_source import DocumentDirectorySource
from doculens.services.ingestion.ingestion_manager import IngestionManager, IngestionState

__all__ = [
    "DataIngestor",
    "DocumentDirectorySource",
    "IngestionManager",
    "IngestionState",
    "TextChunker",
]
