"""WebSocket endpoint streaming per-file ingestion progress.

On connect the client receives the current snapshot as one message::

    {"type": "snapshot", "is_in_progress": true, "files": [FileProgress, ...]}

followed by one message per status transition::

    {"type": "progress", "file_name": "reports/q1.docx", "status": "Done",
     "error": null, "elapsed_ms": 412}

The receive loop only keeps the connection open; pushes happen from the
listener registered with :class:`ProgressTracker`.
"""

from __future__ import annotations

import contextlib

import structlog
from fastapi import WebSocket, WebSocketDisconnect

from doculens.models.ingestion import FileProgress
from doculens.pipeline.progress_tracker import ProgressTracker
from doculens.services.ingestion.ingestion_manager import IngestionManager
from doculens.utils.logging import get_logger

_logger: structlog.BoundLogger = get_logger(__name__)


async def websocket_progress(websocket: WebSocket) -> None:
    """Stream ingestion progress updates to the client until it disconnects.

    Parameters
    ----------
    websocket:
        The WebSocket connection managed by FastAPI / Starlette.
    """
    progress_tracker: ProgressTracker = websocket.app.state.progress_tracker
    manager: IngestionManager = websocket.app.state.ingestion_manager

    await websocket.accept()
    _logger.info("websocket_connected")

    async def _on_progress(event: FileProgress) -> None:
        # The socket may close between events; cleanup happens in ``finally``.
        with contextlib.suppress(Exception):
            await websocket.send_json({"type": "progress", **event.model_dump(mode="json")})

    progress_tracker.register_listener(_on_progress)

    try:
        await websocket.send_json(
            {
                "type": "snapshot",
                "is_in_progress": manager.is_in_progress,
                "files": [
                    event.model_dump(mode="json") for event in progress_tracker.get_snapshot()
                ],
            }
        )

        while True:
            await websocket.receive_text()

    except WebSocketDisconnect:
        _logger.info("websocket_disconnected")

    finally:
        progress_tracker.unregister_listener(_on_progress)
        _logger.debug("websocket_listener_cleaned_up")
