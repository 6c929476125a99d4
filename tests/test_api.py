"""Tests for the HTTP endpoints (orchestrator and repository mocked)."""

from __future__ import annotations

from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest
from fastapi import status
from fastapi.testclient import TestClient

from cyclescope.core.dates import today_partition_key
from cyclescope.core.exceptions import (
    CaptureError,
    ChartNotFoundError,
    MalformedResponseError,
    StorageError,
)
from cyclescope.services.pipeline import AnalysisOutcome
from cyclescope.services.storage import ANNOTATED_CHART, ORIGINAL_CHART


REPO = "cyclescope.repositories.analysis_orm"


class TestHealthEndpoint:
    """GET / and GET /health."""

    @pytest.mark.parametrize("path", ["/", "/health"])
    def test_health_shape(self, client: TestClient, fake_orchestrator, path):
        with patch(f"{REPO}.check_connection", AsyncMock(return_value=True)):
            response = client.get(path)

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["status"] == "ok"
        assert data["service"] == "cyclescope-secular"
        assert data["database"] == "connected"
        assert data["config"] == {
            "dataDir": str(fake_orchestrator.store.root),
            "retentionDays": 30,
            "chartUrl": "https://example.com/chart",
        }
        assert data["downloadStatus"]["isRunning"] is False
        assert "timestamp" in data

    def test_health_ok_without_database(self, client: TestClient):
        with patch(f"{REPO}.check_connection", AsyncMock(return_value=False)):
            response = client.get("/health")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["database"] == "unavailable"

    def test_request_id_header(self, client: TestClient):
        with patch(f"{REPO}.check_connection", AsyncMock(return_value=True)):
            response = client.get("/health", headers={"X-Request-ID": "abc-123"})
        assert response.headers["X-Request-ID"] == "abc-123"


class TestDownload:
    """Capture job endpoints."""

    def test_status(self, client: TestClient, fake_orchestrator):
        fake_orchestrator.status.last_error = "boom"

        response = client.get("/download-status")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["success"] is True
        assert data["status"]["lastError"] == "boom"
        assert data["status"]["isRunning"] is False

    def test_download_accepted(self, client: TestClient, fake_orchestrator):
        response = client.post("/download")

        assert response.status_code == status.HTTP_202_ACCEPTED
        data = response.json()
        assert data["success"] is True
        assert data["status"] == "processing"
        assert data["statusUrl"] == "/download-status"
        assert data["date"] == today_partition_key()
        fake_orchestrator.try_start_capture.assert_called_once_with(today_partition_key())

    def test_download_conflict(self, client: TestClient, fake_orchestrator):
        fake_orchestrator.try_start_capture.return_value = False
        fake_orchestrator.status.is_running = True

        response = client.post("/download")

        assert response.status_code == status.HTTP_409_CONFLICT
        data = response.json()
        assert data["success"] is False
        assert data["message"] == "Download already in progress"
        assert data["status"]["isRunning"] is True

    def test_download_file(self, client: TestClient, fake_orchestrator, store, png_bytes):
        date = today_partition_key()
        path = store.ensure_partition(date) / ORIGINAL_CHART
        path.write_bytes(png_bytes)
        fake_orchestrator.capture_now.return_value = path

        response = client.post("/download-file")

        assert response.status_code == status.HTTP_200_OK
        assert response.headers["content-type"] == "image/png"
        assert response.headers["content-disposition"] == f'attachment; filename="chart-{date}.png"'
        assert response.content == png_bytes

    def test_download_file_conflict(self, client: TestClient, fake_orchestrator):
        fake_orchestrator.status.is_running = True

        response = client.post("/download-file")

        assert response.status_code == status.HTTP_409_CONFLICT
        fake_orchestrator.capture_now.assert_not_awaited()

    def test_download_file_capture_failure(self, client: TestClient, fake_orchestrator):
        fake_orchestrator.capture_now.side_effect = CaptureError(
            "Failed to capture chart after 3 attempts: timeout"
        )

        response = client.post("/download-file")

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        data = response.json()
        assert data["success"] is False
        assert data["code"] == "CAPTURE_ERROR"
        assert "after 3 attempts" in data["error"]


class TestAnalyze:
    """POST /analyze."""

    def test_success(self, client: TestClient, fake_orchestrator, sample_analysis):
        fake_orchestrator.analyze.return_value = AnalysisOutcome(
            record={"id": 42, "annotated_chart_url": "/data/x/annotated_chart.png"},
            analysis=sample_analysis,
        )

        response = client.post("/analyze")

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["success"] is True
        assert data["recordId"] == 42
        assert data["date"] == today_partition_key()
        assert data["annotatedChartUrl"] == "/data/x/annotated_chart.png"
        assert data["analysis"]["layer3"] == sample_analysis["layer3"]

    def test_no_chart(self, client: TestClient, fake_orchestrator):
        fake_orchestrator.analyze.side_effect = ChartNotFoundError()

        response = client.post("/analyze")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["error"] == "Chart not found. Please run /download first."

    def test_analysis_failure_is_502(self, client: TestClient, fake_orchestrator):
        fake_orchestrator.analyze.side_effect = MalformedResponseError("Failed to parse")

        response = client.post("/analyze")

        assert response.status_code == status.HTTP_502_BAD_GATEWAY
        assert response.json()["code"] == "ANALYSIS_MALFORMED"

    def test_storage_failure_is_500(self, client: TestClient, fake_orchestrator):
        fake_orchestrator.analyze.side_effect = StorageError("db down")

        response = client.post("/analyze")

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert response.json()["code"] == "STORAGE_ERROR"


class TestLatest:
    """Latest analysis and chart retrieval."""

    RECORD = {
        "id": 3,
        "asof_date": "2025-11-30",
        "scenario1_probability": Decimal("0.4500"),
        "scenario1_expected_move_min": Decimal("-3.50"),
        "primary_message": "Hold",
    }

    def test_latest_analysis(self, client: TestClient):
        with patch(f"{REPO}.get_latest_analysis", AsyncMock(return_value=dict(self.RECORD))):
            response = client.get("/analysis/latest")

        assert response.status_code == status.HTTP_200_OK
        analysis = response.json()["analysis"]
        assert analysis["scenario1_probability"] == 0.45
        assert analysis["scenario1_expected_move_min"] == -3.5
        assert analysis["asof_date"] == "2025-11-30"

    def test_latest_analysis_empty(self, client: TestClient):
        with patch(f"{REPO}.get_latest_analysis", AsyncMock(return_value=None)):
            response = client.get("/analysis/latest")
        assert response.status_code == status.HTTP_404_NOT_FOUND

    @pytest.mark.parametrize(
        "path,filename,download_name",
        [
            ("/latest-chart", ORIGINAL_CHART, "chart"),
            ("/annotated-chart", ANNOTATED_CHART, "annotated-chart"),
        ],
    )
    def test_chart_served_inline(self, client: TestClient, store, png_bytes, path, filename, download_name):
        (store.ensure_partition("2025-11-30") / filename).write_bytes(png_bytes)

        with patch(f"{REPO}.get_latest_analysis", AsyncMock(return_value=dict(self.RECORD))):
            response = client.get(path)

        assert response.status_code == status.HTTP_200_OK
        assert response.headers["content-type"] == "image/png"
        assert response.headers["content-disposition"] == (
            f'inline; filename="{download_name}-2025-11-30.png"'
        )
        assert response.content == png_bytes

    def test_chart_file_missing(self, client: TestClient):
        with patch(f"{REPO}.get_latest_analysis", AsyncMock(return_value=dict(self.RECORD))):
            response = client.get("/annotated-chart")
        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_chart_without_record(self, client: TestClient):
        with patch(f"{REPO}.get_latest_analysis", AsyncMock(return_value=None)):
            response = client.get("/latest-chart")
        assert response.status_code == status.HTTP_404_NOT_FOUND


class TestUnknownPath:
    def test_lists_endpoints(self, client: TestClient):
        response = client.get("/nope")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        data = response.json()
        assert data["success"] is False
        assert "POST /analyze" in data["availableEndpoints"]

    def test_cors_allows_any_origin(self, client: TestClient):
        response = client.options(
            "/download",
            headers={
                "Origin": "https://dashboard.example.com",
                "Access-Control-Request-Method": "POST",
            },
        )
        assert response.status_code == status.HTTP_200_OK
        assert response.headers["access-control-allow-origin"] in ("*", "https://dashboard.example.com")
