"""Integration tests for the FastAPI endpoints using TestClient."""

from __future__ import annotations

import asyncio
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import FastAPI, WebSocket
from fastapi.testclient import TestClient

from doculens import __version__
from doculens.api.middleware import ErrorHandlingMiddleware
from doculens.api.routes import router as api_router
from doculens.api.websocket import websocket_progress
from doculens.config.settings import Settings
from doculens.models.ingestion import IngestionStatus
from doculens.pipeline.progress_tracker import ProgressTracker
from doculens.services.ingestion.ingestion_manager import IngestionManager
from doculens.utils.errors import VectorStoreError

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _collection(count: int) -> MagicMock:
    collection = MagicMock()
    collection.count = AsyncMock(return_value=count)
    return collection


def _create_test_app(document_path: str = "/srv/docs") -> tuple[FastAPI, MagicMock, ProgressTracker]:
    """Create a FastAPI app with a mocked ingestion manager on ``app.state``."""
    app = FastAPI()
    app.add_middleware(ErrorHandlingMiddleware)
    app.include_router(api_router)

    @app.websocket("/ws/ingestion")
    async def ws_ingestion(websocket: WebSocket) -> None:
        await websocket_progress(websocket)

    @app.get("/boom")
    async def boom() -> None:
        raise VectorStoreError(message="collection unavailable", provider_name="chromadb")

    manager = MagicMock(spec=IngestionManager)
    manager.trigger_ingestion = AsyncMock(return_value=None)
    manager.is_in_progress = False
    tracker = ProgressTracker()

    app.state.ingestion_manager = manager
    app.state.progress_tracker = tracker
    app.state.settings = Settings(_env_file=None, document_path=document_path, chunk_size=900)
    app.state.documents_collection = _collection(4)
    app.state.chunks_collection = _collection(37)

    return app, manager, tracker


@pytest.fixture
def docs_dir(tmp_path: Path) -> Path:
    path = tmp_path / "docs"
    path.mkdir()
    return path


@pytest.fixture
def test_app(docs_dir: Path):
    """Return (TestClient, manager mock, progress tracker)."""
    app, manager, tracker = _create_test_app(str(docs_dir))
    return TestClient(app), manager, tracker


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestTriggerIngestionEndpoint:
    """Tests for POST /api/v1/ingestion."""

    def test_uses_configured_path(self, test_app, docs_dir: Path) -> None:
        client, manager, _ = test_app

        response = client.post("/api/v1/ingestion", json={})

        assert response.status_code == 202
        data = response.json()
        assert data["status"] == "accepted"
        assert data["document_path"] == str(docs_dir)
        assert data["message"] == "Ingestion scheduled."

        # Background tasks run before TestClient returns.
        path, options = manager.trigger_ingestion.await_args.args
        assert path == str(docs_dir)
        assert options.chunk_size == 900
        assert options.recursive is True

    def test_body_overrides_path_and_recursion(self, test_app, tmp_path: Path) -> None:
        client, manager, _ = test_app
        other = tmp_path / "other"
        other.mkdir()

        response = client.post(
            "/api/v1/ingestion",
            json={"document_path": f" {other} ", "recursive": False},
        )

        assert response.status_code == 202
        assert response.json()["document_path"] == str(other)
        path, options = manager.trigger_ingestion.await_args.args
        assert path == str(other)
        assert options.recursive is False

    def test_no_path_anywhere_is_rejected(self) -> None:
        app, manager, _ = _create_test_app(document_path="")
        client = TestClient(app)

        response = client.post("/api/v1/ingestion", json={"document_path": "   "})

        assert response.status_code == 400
        manager.trigger_ingestion.assert_not_awaited()

    def test_running_ingestion_is_reported(self, test_app) -> None:
        client, manager, _ = test_app
        manager.is_in_progress = True

        response = client.post("/api/v1/ingestion", json={})

        assert response.status_code == 202
        assert "already in progress" in response.json()["message"]

    def test_background_failure_does_not_break_response(self, test_app) -> None:
        client, manager, _ = test_app
        manager.trigger_ingestion = AsyncMock(side_effect=RuntimeError("store down"))

        response = client.post("/api/v1/ingestion", json={})

        assert response.status_code == 202
        manager.trigger_ingestion.assert_awaited_once()


class TestStatusEndpoint:
    """Tests for GET /api/v1/ingestion/status."""

    def test_returns_snapshot(self, test_app) -> None:
        client, manager, tracker = test_app
        manager.is_in_progress = True
        asyncio.run(tracker.report("a.txt", IngestionStatus.DONE, elapsed_ms=12))
        asyncio.run(tracker.report("sub/b.pdf", IngestionStatus.INGESTING))

        response = client.get("/api/v1/ingestion/status")

        assert response.status_code == 200
        data = response.json()
        assert data["is_in_progress"] is True
        files = {f["file_name"]: f for f in data["files"]}
        assert files["a.txt"]["status"] == "Done"
        assert files["a.txt"]["elapsed_ms"] == 12
        assert files["sub/b.pdf"]["status"] == "Ingesting"

    def test_idle_and_empty(self, test_app) -> None:
        client, _, _ = test_app

        data = client.get("/api/v1/ingestion/status").json()

        assert data == {"is_in_progress": False, "files": []}


class TestHealthEndpoint:
    """Tests for GET /api/v1/health."""

    def test_healthy(self, test_app) -> None:
        client, _, _ = test_app

        response = client.get("/api/v1/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["version"] == __version__
        assert data["providers"]["documents_count"] == 4
        assert data["providers"]["chunks_count"] == 37

    def test_degraded_when_collection_fails(self) -> None:
        app, _, _ = _create_test_app()
        app.state.chunks_collection.count = AsyncMock(side_effect=RuntimeError("no store"))
        client = TestClient(app)

        data = client.get("/api/v1/health").json()

        assert data["status"] == "degraded"
        assert data["providers"]["chunks"] is False
        assert data["providers"]["documents"] is True


class TestErrorHandling:
    """DocuLensError subclasses become JSON error bodies."""

    def test_missing_directory_maps_to_404(self, test_app, tmp_path: Path) -> None:
        client, manager, _ = test_app
        missing = tmp_path / "nope"

        response = client.post("/api/v1/ingestion", json={"document_path": str(missing)})

        assert response.status_code == 404
        assert response.json() == {
            "error": "DocumentSourceNotFoundError",
            "detail": f"Document directory not found: {missing}",
        }
        manager.trigger_ingestion.assert_not_awaited()

    def test_file_path_is_not_a_directory(self, test_app, docs_dir: Path) -> None:
        client, manager, _ = test_app
        stray = docs_dir / "notes.txt"
        stray.write_text("hello", encoding="utf-8")

        response = client.post("/api/v1/ingestion", json={"document_path": str(stray)})

        assert response.status_code == 404
        manager.trigger_ingestion.assert_not_awaited()

    def test_other_errors_map_to_500(self, test_app) -> None:
        client, _, _ = test_app

        response = client.get("/boom")

        assert response.status_code == 500
        assert response.json()["error"] == "VectorStoreError"


class TestProgressWebSocket:
    """Tests for the /ws/ingestion progress stream."""

    def test_snapshot_on_connect_and_cleanup(self, test_app) -> None:
        client, _, tracker = test_app
        asyncio.run(tracker.report("a.txt", IngestionStatus.WAITING))

        with client.websocket_connect("/ws/ingestion") as websocket:
            message = websocket.receive_json()

        assert message["type"] == "snapshot"
        assert message["is_in_progress"] is False
        assert message["files"] == [
            {"file_name": "a.txt", "status": "Waiting", "error": None, "elapsed_ms": None}
        ]
        assert tracker._listeners == []
