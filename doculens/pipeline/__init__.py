"""Run-time plumbing shared by the ingestion services and the API."""

from doculens.pipeline.progress_tracker import ProgressTracker

__all__ = ["ProgressTracker"]
