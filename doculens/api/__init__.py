"""HTTP and WebSocket surface for triggering and watching ingestion runs."""
