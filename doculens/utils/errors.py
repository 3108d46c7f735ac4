"""Custom exception hierarchy for DocuLens.

All application exceptions inherit from :class:`DocuLensError`, which
carries an optional ``provider_name`` so error handlers can identify which
backend (e.g. "chromadb", "fastembed") caused the failure.

    DocuLensError  (base -- catch-all for any DocuLens error)
    +-- DocumentSourceNotFoundError (scan target directory is missing)
    +-- VectorStoreError            (vector collection read or write failure)
    +-- EmbeddingError              (embedding model load or inference failure)

Per-file extraction problems are not exceptions: extractors log them and
return empty text, so one corrupt file never aborts a scan.
"""


class DocuLensError(Exception):
    """Base exception for all DocuLens errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name``.  ``__str__`` prefixes the provider name in brackets
    for structured log output, e.g. ``[chromadb] Upsert failed``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Scanning errors
# ---------------------------------------------------------------------------

class DocumentSourceNotFoundError(DocuLensError):
    """Raised when a document source's directory does not exist at scan time.

    The ingestion trigger endpoint raises it for a missing directory, which
    the API error middleware turns into a 404.
    """

    def __init__(
        self,
        message: str = "Document directory not found",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Storage / embedding errors
# ---------------------------------------------------------------------------

class VectorStoreError(DocuLensError):
    """Raised when a vector collection operation fails."""

    def __init__(
        self,
        message: str = "Vector store operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class EmbeddingError(DocuLensError):
    """Raised when the embedding model cannot be loaded or invoked."""

    def __init__(
        self,
        message: str = "Embedding generation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
