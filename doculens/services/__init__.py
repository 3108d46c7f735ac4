"""Application services: ingestion pipeline and configuration listener."""
