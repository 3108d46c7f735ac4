"""Single-flight coordinator for ingestion runs.

Only one ingestion run may be active in the process.  Triggers come from
the HTTP layer (fire-and-forget background task) and from the
configuration-change listener (awaited inline).

State machine::

    IDLE --trigger, gate acquired, directory exists--> RUNNING --done/raised--> IDLE

A trigger that cannot take the gate within ``lock_timeout`` seconds is
dropped with a log line; it is neither queued nor reported as an error.
"""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum
from pathlib import Path

import structlog

from doculens.interfaces.ingestion_source import IIngestionSource
from doculens.models.ingestion import IngestionOptions, IngestionRunResult
from doculens.pipeline.progress_tracker import ProgressTracker
from doculens.services.ingestion.data_ingestor import DataIngestor
from doculens.services.ingestion.document_source import DocumentDirectorySource
from doculens.utils.concurrency import SingleFlightGate

logger = structlog.get_logger(logger_name=__name__)

SourceFactory = Callable[[str, IngestionOptions], IIngestionSource]


class IngestionState(str, Enum):
    IDLE = "Idle"
    RUNNING = "Running"


class IngestionManager:
    """Runs at most one :class:`DataIngestor` pass at a time.

    Parameters
    ----------
    ingestor:
        The reconciliation driver.
    progress:
        Progress bus handed to every source the manager builds.
    options:
        Default run snapshot, used when a trigger passes none.
    lock_timeout:
        Seconds a trigger waits for the gate before giving up.
    source_factory:
        Builds the source for a directory; defaults to
        :class:`DocumentDirectorySource`.
    """

    def __init__(
        self,
        ingestor: DataIngestor,
        progress: ProgressTracker,
        options: IngestionOptions | None = None,
        lock_timeout: float = 1.0,
        source_factory: SourceFactory | None = None,
    ) -> None:
        self._ingestor = ingestor
        self._progress = progress
        self._options = options or IngestionOptions()
        self._gate = SingleFlightGate(timeout=lock_timeout)
        self._source_factory = source_factory or self._directory_source
        self._state = IngestionState.IDLE
        self._last_result: IngestionRunResult | None = None

    @property
    def state(self) -> IngestionState:
        return self._state

    @property
    def is_in_progress(self) -> bool:
        return self._state is IngestionState.RUNNING

    @property
    def last_result(self) -> IngestionRunResult | None:
        return self._last_result

    async def trigger_ingestion(
        self,
        document_path: str,
        options: IngestionOptions | None = None,
    ) -> IngestionRunResult | None:
        """Ingest *document_path* unless a run is already active.

        Returns
        -------
        IngestionRunResult | None
            The run summary, or ``None`` when the trigger was dropped (busy,
            blank path or missing directory).

        Raises
        ------
        Exception
            Whatever escaped the ingestor; logged here first.
        """
        if not document_path or not document_path.strip():
            logger.warning("ingestion_skipped_no_path")
            return None

        if not await self._gate.try_acquire():
            logger.info(
                "ingestion_already_running",
                document_path=document_path,
                lock_timeout=self._gate.timeout,
            )
            return None

        try:
            directory = Path(document_path)
            if not directory.is_dir():
                logger.warning("document_directory_not_found", document_path=document_path)
                return None

            run_options = options or self._options
            self._state = IngestionState.RUNNING
            self._progress.clear()
            logger.info(
                "ingestion_triggered",
                document_path=document_path,
                recursive=run_options.recursive,
                chunk_size=run_options.chunk_size,
                chunk_overlap=run_options.chunk_overlap,
            )

            source = self._source_factory(str(directory), run_options)
            try:
                result = await self._ingestor.ingest(source, run_options)
            except Exception as exc:
                logger.error(
                    "ingestion_failed",
                    document_path=document_path,
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
                raise

            self._last_result = result
            return result
        finally:
            self._state = IngestionState.IDLE
            self._gate.release()

    def _directory_source(self, path: str, options: IngestionOptions) -> IIngestionSource:
        return DocumentDirectorySource(path, options, self._progress)
