"""Ingestion progress tracking with callback-based listener notification.

Every file an ingestion run touches moves through
``Waiting -> Ingesting -> (Done | Failed)``.  The document source publishes
one :class:`FileProgress` event per transition; the tracker keeps the last
event per file and broadcasts each event to all registered listeners
(WebSocket clients, the CLI's console printer, tests).

    DocumentDirectorySource --publish()--> ProgressTracker --callback()--> WebSocket handler
                                                           --callback()--> CLI printer

Ordering: ``publish`` awaits the listeners before returning, and a file's
events are published one after another by the task that owns that file.
A listener therefore never sees a file's events out of order, while
events of different files may interleave.

Delivery is best-effort: listener errors are logged and skipped, and late
subscribers only get the snapshot, not a replay.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable

import structlog

from doculens.models.ingestion import FileProgress, IngestionStatus
from doculens.utils.logging import get_logger


class ProgressTracker:
    """Tracks and broadcasts per-file ingestion progress via callbacks.

    Listeners are sync or async callables taking one :class:`FileProgress`.
    """

    def __init__(self) -> None:
        self._latest: dict[str, FileProgress] = {}
        self._listeners: list[Callable] = []
        self._logger: structlog.BoundLogger = get_logger(__name__)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def publish(self, event: FileProgress) -> None:
        """Record *event* as the file's latest status and notify all listeners."""
        self._latest[event.file_name] = event

        self._logger.debug(
            "file_progress",
            file_name=event.file_name,
            status=event.status.value,
            elapsed_ms=event.elapsed_ms,
            error=event.error,
        )

        await self._notify_listeners(event)

    async def report(
        self,
        file_name: str,
        status: IngestionStatus,
        error: str | None = None,
        elapsed_ms: int | None = None,
    ) -> None:
        """Shorthand for publishing a freshly built :class:`FileProgress`."""
        await self.publish(
            FileProgress(
                file_name=file_name,
                status=status,
                error=error,
                elapsed_ms=elapsed_ms,
            )
        )

    def register_listener(self, callback: Callable) -> None:
        """Register a callback that receives every subsequent event.

        Parameters
        ----------
        callback:
            An async or sync callable accepting one :class:`FileProgress`.
        """
        if callback not in self._listeners:
            self._listeners.append(callback)
            self._logger.debug("listener_registered", total_listeners=len(self._listeners))

    def unregister_listener(self, callback: Callable) -> None:
        """Remove a previously registered callback.  Unknown callbacks are ignored."""
        if callback in self._listeners:
            self._listeners.remove(callback)
            self._logger.debug(
                "listener_unregistered",
                remaining_listeners=len(self._listeners),
            )

    def get_snapshot(self) -> list[FileProgress]:
        """Return the latest event of every file seen since the last :meth:`clear`."""
        return list(self._latest.values())

    def clear(self) -> None:
        """Forget per-file statuses, typically at the start of a new run."""
        self._latest.clear()

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _notify_listeners(self, event: FileProgress) -> None:
        """Invoke every listener in registration order.

        A listener that raises is logged and skipped so a dropped WebSocket
        cannot stall ingestion or starve the other listeners.
        """
        for callback in list(self._listeners):
            try:
                result = callback(event)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as exc:
                self._logger.warning(
                    "listener_callback_error",
                    file_name=event.file_name,
                    error=str(exc),
                    callback=getattr(callback, "__name__", repr(callback)),
                )
