"""Shared utilities: errors, logging, concurrency helpers."""
