"""DocuLens: document ingestion backend for retrieval-augmented chat."""

__version__ = "0.1.0"
