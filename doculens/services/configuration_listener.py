"""Re-ingests documents when the configured document path changes.

The listener is awaited inline by whoever dispatches configuration
changes (the app lifespan at startup, or a settings store).  It must never
raise back into that dispatcher, so every ingestion failure is caught and
logged here.
"""

from __future__ import annotations

import structlog

from doculens.models.configuration import ConfigurationChangedEvent
from doculens.services.ingestion.ingestion_manager import IngestionManager

logger = structlog.get_logger(logger_name=__name__)

_DOCUMENT_PATH = "document_path"


class ConfigurationChangeListener:
    """Triggers ingestion whenever ``document_path`` is among the changed properties."""

    def __init__(self, manager: IngestionManager) -> None:
        self._manager = manager

    async def on_configuration_changed(self, event: ConfigurationChangedEvent) -> None:
        if _DOCUMENT_PATH not in event.changed_properties:
            return
        if not event.document_path.strip():
            logger.info("document_path_cleared")
            return

        logger.info("document_path_changed", document_path=event.document_path)
        try:
            await self._manager.trigger_ingestion(event.document_path, event.options)
        except Exception as exc:
            logger.error(
                "configuration_change_ingestion_failed",
                document_path=event.document_path,
                error=str(exc),
                error_type=type(exc).__name__,
            )
