"""Configuration-change event model.

Emitted whenever the active application configuration changes (including
the initial load at startup) and consumed by
:class:`~doculens.services.configuration_listener.ConfigurationChangeListener`.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from doculens.models.ingestion import IngestionOptions


class ConfigurationChangedEvent(BaseModel):
    """Names the properties that changed and carries the new values."""

    model_config = ConfigDict(frozen=True)

    changed_properties: frozenset[str] = Field(
        description="Names of the settings whose value changed, e.g. {'document_path'}."
    )
    document_path: str = Field(default="", description="Document directory after the change.")
    options: IngestionOptions = Field(default_factory=IngestionOptions)
