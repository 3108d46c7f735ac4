"""Command-line tools for DocuLens."""
