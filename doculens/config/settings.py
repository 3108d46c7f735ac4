"""Application settings loaded from environment variables via pydantic-settings.

Values come from, in priority order:

  1. Environment variables, e.g. ``DOCUMENT_PATH=/srv/docs``
  2. The ``.env`` file in the working directory
  3. The defaults below

Field ``chunk_size`` maps to ``CHUNK_SIZE`` and so on.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """DocuLens application settings.

    Environment variables override defaults. Loaded from .env file when present.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    # === Document source ===
    # Empty string = "not configured"; nothing is ingested at startup.
    document_path: str = ""
    document_recursive: bool = True

    # === Chunking ===
    chunk_size: int = 1000
    chunk_overlap: int = 200
    paragraph_max_tokens: int = 200  # PDF paragraph splitter target

    # === Ingestion run ===
    ingestion_batch_size: int = 100
    ingestion_max_concurrency: int = 1
    ingestion_lock_timeout: float = 1.0  # seconds a trigger waits for the single-flight gate

    # === Vector store ===
    chromadb_persist_dir: str = "./data/chromadb"
    chromadb_documents_collection: str = "doculens_documents"
    chromadb_chunks_collection: str = "doculens_chunks"
    embedding_model: str = "BAAI/bge-small-en-v1.5"

    # === App Config ===
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_env: str = "development"
    log_level: str = "INFO"
