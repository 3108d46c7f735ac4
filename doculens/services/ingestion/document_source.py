"""Directory-backed ingestion source.

:class:`DocumentDirectorySource` scans one directory (recursively or not)
for ``.docx``, ``.doc``, ``.pdf`` and ``.txt`` files, compares them with
the document records a previous run left in the store, and turns new or
modified files into chunks.

Identifiers
-----------
Everything about a record is derived from the file, never random, so a
rescan recognises files it has seen before:

- ``document_id``: ``{type}_{flattened relative path}``, extension stripped.
  Path components are joined with ``_`` after escaping ``%`` as ``%25`` and
  ``_`` as ``%5F``; the id is reversible
  (``reports/q1_draft.docx`` -> ``docx_reports_q1%5Fdraft``).  The type is
  read case-insensitively, so ``a.txt`` and ``a.TXT`` share an id; discovery
  keeps the file :func:`resolve_document_path` maps the id to and skips the
  other.
- ``source_id``: ``DocumentDirectory_{directory name}_{AllDirectories|TopDirectoryOnly}``.
- ``key``: ``doc_{source_id}_{document_id}``.
- ``document_version``: file mtime in UTC, ISO-8601.

Keys carry the source id, so two sources holding the same relative path
never overwrite each other's records.

Chunking by format
------------------
- TXT:  one chunk per blank-line paragraph, key ``{source_id}_{document_id}_chunk_{i}``.
- DOCX: fixed character windows over the body text, same key scheme.
- PDF:  one chunk per layout paragraph, page number kept, random key.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from datetime import datetime, timezone
from pathlib import Path, PurePath
from urllib.parse import unquote

import structlog

from doculens.interfaces.ingestion_source import IIngestionSource
from doculens.interfaces.text_extractor import ITextExtractor
from doculens.models.ingestion import (
    IngestedChunk,
    IngestedDocument,
    IngestionOptions,
    IngestionStatus,
)
from doculens.pipeline.progress_tracker import ProgressTracker
from doculens.services.ingestion.chunker import TextChunker
from doculens.services.ingestion.extractors import DocxExtractor, PdfExtractor, TxtExtractor
from doculens.utils.errors import DocumentSourceNotFoundError

logger = structlog.get_logger(logger_name=__name__)

# Office lock / temp files, e.g. "~$report.docx".
_TEMP_FILE_PREFIX = "~$"

_ID_PREFIXES: dict[str, str] = {
    ".docx": "docx",
    ".doc": "doc",
    ".pdf": "pdf",
    ".txt": "txt",
}
_PREFIX_EXTENSIONS: dict[str, str] = {prefix: ext for ext, prefix in _ID_PREFIXES.items()}

SUPPORTED_EXTENSIONS = frozenset(_ID_PREFIXES)

# Tried, after the extension the id prefix names, when resolving an id.
_FALLBACK_EXTENSIONS = (".docx", ".pdf", ".doc", ".txt")


# ---------------------------------------------------------------------------
# Identifier helpers
# ---------------------------------------------------------------------------


def build_source_id(directory: Path, recursive: bool) -> str:
    mode = "AllDirectories" if recursive else "TopDirectoryOnly"
    return f"DocumentDirectory_{directory.name}_{mode}"


def _escape_component(component: str) -> str:
    return component.replace("%", "%25").replace("_", "%5F")


def generate_document_id(relative_path: PurePath) -> str:
    """Derive the flat, reversible document id for a path relative to the source root.

    The suffix only selects the type prefix and is matched case-insensitively,
    so paths differing only in suffix case (``a.txt``, ``a.TXT``) share an id.
    :meth:`DocumentDirectorySource.discover_changed` keeps one of them.

    Raises
    ------
    ValueError
        If the extension is not supported.
    """
    prefix = _ID_PREFIXES.get(relative_path.suffix.lower())
    if prefix is None:
        raise ValueError(f"Unsupported document type: {relative_path}")
    components = relative_path.with_suffix("").parts
    return f"{prefix}_" + "_".join(_escape_component(part) for part in components)


def document_key(source_id: str, document_id: str) -> str:
    return f"doc_{source_id}_{document_id}"


def chunk_key(source_id: str, document_id: str, index: int) -> str:
    return f"{source_id}_{document_id}_chunk_{index}"


def document_version(path: Path) -> str:
    """Last-modified time of *path* as a UTC ISO-8601 string."""
    return datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc).isoformat()


def resolve_document_path(directory: Path, document_id: str) -> Path | None:
    """Map *document_id* back to the file under *directory*, or ``None``.

    The extension named by the id prefix is tried first, then the other
    supported extensions and finally the bare path.  On case-sensitive
    filesystems a file whose suffix differs only in case (``REPORT.PDF``)
    is still found.
    """
    prefix, separator, flat = document_id.partition("_")
    if not separator or not flat:
        return None

    stem_path = directory.joinpath(*(unquote(part) for part in flat.split("_")))
    primary = _PREFIX_EXTENSIONS.get(prefix)

    extensions = [primary] if primary else []
    extensions += [ext for ext in _FALLBACK_EXTENSIONS if ext != primary]
    for extension in extensions:
        candidate = stem_path.with_name(stem_path.name + extension)
        if candidate.is_file():
            return candidate
    if stem_path.is_file():
        return stem_path

    if primary and stem_path.parent.is_dir():
        for entry in sorted(stem_path.parent.iterdir()):
            if (
                entry.is_file()
                and entry.stem == stem_path.name
                and entry.suffix.lower() == primary
            ):
                return entry
    return None


# ---------------------------------------------------------------------------
# Source
# ---------------------------------------------------------------------------


class DocumentDirectorySource(IIngestionSource):
    """Scans a directory of office documents for the data ingestor.

    Parameters
    ----------
    directory:
        Root directory to scan.
    options:
        Configuration snapshot of the run (chunk sizes, recursion).
    progress:
        Bus receiving one event per file state transition.
    extractors:
        Override the default TXT / DOCX / PDF extractors (tests).
    """

    def __init__(
        self,
        directory: str | Path,
        options: IngestionOptions,
        progress: ProgressTracker,
        extractors: list[ITextExtractor] | None = None,
    ) -> None:
        self._directory = Path(directory).resolve()
        self._options = options
        self._progress = progress
        self._chunker = TextChunker(
            chunk_size=options.chunk_size,
            chunk_overlap=options.chunk_overlap,
            paragraph_max_tokens=options.paragraph_max_tokens,
        )
        self._extractors = extractors or [
            TxtExtractor(),
            DocxExtractor(),
            PdfExtractor(chunker=self._chunker),
        ]
        self._source_id = build_source_id(self._directory, options.recursive)

    @property
    def source_id(self) -> str:
        return self._source_id

    @property
    def directory(self) -> Path:
        return self._directory

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    async def discover_changed(
        self, existing: list[IngestedDocument]
    ) -> list[IngestedDocument]:
        """Return new or modified, processable documents; report each as Waiting.

        Raises
        ------
        DocumentSourceNotFoundError
            If the directory does not exist.
        """
        if not self._directory.is_dir():
            raise DocumentSourceNotFoundError(
                message=f"Document directory not found: {self._directory}"
            )

        known = {
            document.document_id: document
            for document in existing
            if document.source_id == self._source_id
        }
        files = await asyncio.to_thread(self._enumerate_unique_files)

        changed: list[tuple[Path, IngestedDocument]] = []
        for path in files:
            # A file may vanish or be locked between enumeration and here.
            try:
                document = self._describe(path)
                previous = known.get(document.document_id)
                if (
                    previous is not None
                    and previous.document_version == document.document_version
                ):
                    continue
                if not await asyncio.to_thread(self._can_process, path):
                    logger.warning("file_not_processable", file_path=str(path))
                    continue
            except Exception as exc:
                logger.error(
                    "file_evaluation_failed",
                    file_path=str(path),
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
                continue
            changed.append((path, document))

        for path, _ in changed:
            await self._progress.report(self._display_name(path), IngestionStatus.WAITING)

        logger.info(
            "documents_discovered",
            source_id=self._source_id,
            files=len(files),
            changed=len(changed),
        )
        return [document for _, document in changed]

    async def discover_deleted(
        self, existing: list[IngestedDocument]
    ) -> list[IngestedDocument]:
        """Return this source's records whose file is no longer on disk."""
        owned = [document for document in existing if document.source_id == self._source_id]
        if not self._directory.is_dir():
            return owned

        files = await asyncio.to_thread(self._enumerate_files)
        current_ids = {
            generate_document_id(path.relative_to(self._directory)) for path in files
        }
        deleted = [document for document in owned if document.document_id not in current_ids]
        if deleted:
            logger.info("documents_deleted_on_disk", source_id=self._source_id, count=len(deleted))
        return deleted

    # ------------------------------------------------------------------
    # Chunking
    # ------------------------------------------------------------------

    async def chunks_for(self, document: IngestedDocument) -> list[IngestedChunk]:
        """Extract and chunk *document*, reporting Ingesting then Done or Failed.

        A document whose file cannot be found yields no chunks.  Any other
        exception is reported as Failed and re-raised.
        """
        path = await asyncio.to_thread(
            resolve_document_path, self._directory, document.document_id
        )
        if path is None:
            logger.warning(
                "document_file_missing",
                document_id=document.document_id,
                directory=str(self._directory),
            )
            return []

        display_name = self._display_name(path)
        await self._progress.report(display_name, IngestionStatus.INGESTING)
        start = time.perf_counter()

        try:
            chunks = await asyncio.to_thread(self._build_chunks, document, path)
        except Exception as exc:
            elapsed_ms = _elapsed_ms(start)
            logger.error(
                "document_chunking_failed",
                document_id=document.document_id,
                file_path=str(path),
                error=str(exc),
            )
            await self._progress.report(
                display_name,
                IngestionStatus.FAILED,
                error=str(exc),
                elapsed_ms=elapsed_ms,
            )
            raise

        elapsed_ms = _elapsed_ms(start)
        await self._progress.report(display_name, IngestionStatus.DONE, elapsed_ms=elapsed_ms)
        logger.info(
            "document_chunked",
            document_id=document.document_id,
            chunks=len(chunks),
            elapsed_ms=elapsed_ms,
        )
        return chunks

    def _build_chunks(self, document: IngestedDocument, path: Path) -> list[IngestedChunk]:
        extractor = self._extractor_for(path)
        suffix = path.suffix.lower()

        if suffix == ".pdf":
            units = extractor.extract_pages(path)
            keys = [uuid.uuid4().hex for _ in units]
        elif suffix == ".txt":
            units = extractor.extract_pages(path)
            keys = [
                chunk_key(document.source_id, document.document_id, index)
                for index in range(len(units))
            ]
        else:
            windows = self._chunker.chunk_windows(extractor.extract_text(path))
            units = [(index + 1, window) for index, window in enumerate(windows)]
            keys = [
                chunk_key(document.source_id, document.document_id, index)
                for index in range(len(units))
            ]

        return [
            IngestedChunk(
                key=key,
                document_id=document.document_id,
                source_id=document.source_id,
                page_number=page_number,
                text=text,
                file_name=path.name,
                file_path=str(path),
            )
            for key, (page_number, text) in zip(keys, units, strict=True)
        ]

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _enumerate_files(self) -> list[Path]:
        candidates = self._directory.rglob("*") if self._options.recursive else self._directory.glob("*")
        return sorted(
            path
            for path in candidates
            if path.is_file()
            and path.suffix.lower() in SUPPORTED_EXTENSIONS
            and not path.name.startswith(_TEMP_FILE_PREFIX)
        )

    def _enumerate_unique_files(self) -> list[Path]:
        """Enumerate files, keeping one per document id.

        Paths that differ only in suffix case map to the same id.  The file
        :func:`resolve_document_path` resolves the id to wins, so discovery
        and chunking always read the same file.
        """
        by_id: dict[str, list[Path]] = {}
        for path in self._enumerate_files():
            document_id = generate_document_id(path.relative_to(self._directory))
            by_id.setdefault(document_id, []).append(path)

        unique: list[Path] = []
        for document_id, paths in by_id.items():
            if len(paths) == 1:
                unique.append(paths[0])
                continue
            resolved = resolve_document_path(self._directory, document_id)
            kept = resolved if resolved in paths else paths[0]
            for path in paths:
                if path != kept:
                    logger.warning(
                        "duplicate_document_id",
                        document_id=document_id,
                        file_path=str(path),
                        kept=str(kept),
                    )
            unique.append(kept)
        return sorted(unique)

    def _describe(self, path: Path) -> IngestedDocument:
        document_id = generate_document_id(path.relative_to(self._directory))
        return IngestedDocument(
            key=document_key(self._source_id, document_id),
            source_id=self._source_id,
            document_id=document_id,
            document_version=document_version(path),
        )

    def _extractor_for(self, path: Path) -> ITextExtractor:
        for extractor in self._extractors:
            if extractor.supports(path):
                return extractor
        raise ValueError(f"No extractor registered for {path.suffix!r}")

    def _can_process(self, path: Path) -> bool:
        return self._extractor_for(path).can_process(path)

    def _display_name(self, path: Path) -> str:
        """Path relative to the source root, so same-named files in subfolders stay distinct."""
        return path.relative_to(self._directory).as_posix()


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)
