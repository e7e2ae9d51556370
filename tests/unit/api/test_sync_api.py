"""Tests for the live sync trigger API."""

from unittest.mock import AsyncMock, patch

import pytest
from fastapi.testclient import TestClient

from live_kb_sync.api.app import app
from live_kb_sync.api.sync import get_settings
from live_kb_sync.pipelines.orchestrator import SyncResult, SyncStage


@pytest.fixture
def client(settings):
    app.dependency_overrides[get_settings] = lambda: settings
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestSyncAPI:
    """Test the live sync endpoints."""

    def test_root_health(self, client):
        response = client.get("/")

        assert response.status_code == 200
        assert "is running" in response.text

    @pytest.mark.parametrize("method", ["get", "post"])
    def test_success_returns_200(self, client, settings, method):
        ok = SyncResult(ok=True, stage=SyncStage.INDEXED, message="Live document indexed")
        with patch("live_kb_sync.api.sync.SyncOrchestrator") as mock_cls:
            mock_cls.return_value.run = AsyncMock(return_value=ok)
            response = getattr(client, method)("/api/v1/live-sync")

        assert response.status_code == 200
        assert response.json()["ok"] is True
        assert response.json()["message"] == "Live document indexed"
        assert mock_cls.call_args[0][0] is settings

    def test_failure_returns_500(self, client):
        failed = SyncResult(
            ok=False,
            stage=SyncStage.FAILED,
            failed_stage=SyncStage.START,
            error="start: Missing required settings: OPENAI_API_KEY",
        )
        with patch("live_kb_sync.api.sync.SyncOrchestrator") as mock_cls:
            mock_cls.return_value.run = AsyncMock(return_value=failed)
            response = client.get("/api/v1/live-sync")

        body = response.json()
        assert response.status_code == 500
        assert body["ok"] is False
        assert body["failed_stage"] == "start"
        assert "OPENAI_API_KEY" in body["error"]
