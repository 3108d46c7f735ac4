"""Provider adapters for external backends (vector store, embeddings)."""
