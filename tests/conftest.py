"""Pytest configuration and fixtures."""

from __future__ import annotations

import copy
import io
from pathlib import Path
from typing import Any, AsyncGenerator, Generator
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from PIL import Image

# Configure asyncio
pytest_plugins = ["pytest_asyncio"]


SAMPLE_ANALYSIS: dict[str, Any] = {
    "layer1": {
        "asof_date": "2025-11-29",
        "secular_trend": "Long-term uptrend inside a rising log channel since 2009",
        "secular_regime_status": "Intact",
        "channel_position": "Upper third",
        "recent_behavior_summary": "Higher highs with shrinking momentum",
        "interpretation": "Trend intact but stretched",
        "risk_bias": "Neutral to cautious",
        "summary_signal": "Hold",
    },
    "layer2": {
        "scenario_analysis": {
            "dominant_dynamics": "Momentum fading near channel top",
            "overall_bias": "Sideways",
            "secular_summary": "Consolidation favoured",
            "scenarios": [
                {
                    "scenario_id": "S1",
                    "name": "Continuation",
                    "probability": 0.45,
                    "path_summary": "Grind higher along the channel",
                    "technical_logic": "Rising lows hold",
                    "target_zone_description": "Upper channel line",
                    "expected_move_percent": [5, 12],
                    "risk_profile": "Moderate",
                },
                {
                    "scenario_id": "S2",
                    "name": "Range",
                    "probability": 0.35,
                    "path_summary": "Sideways chop",
                    "technical_logic": "Overhead supply",
                    "target_zone_description": "Mid channel",
                    "expected_move_percent": [-3, 3],
                    "risk_profile": "Low",
                },
                {
                    "scenario_id": "S3",
                    "name": "Pullback",
                    "probability": 0.20,
                    "path_summary": "Retest of lower channel",
                    "technical_logic": "Momentum divergence",
                    "target_zone_description": "Lower channel line",
                    "expected_move_percent": [-15, -8],
                    "risk_profile": "High",
                },
            ],
        },
    },
    "layer3": {
        "scenario_summary": [
            "Continuation 45%",
            "Range 35%",
            "Pullback 20%",
        ],
        "primary_message": "Secular uptrend intact; expect consolidation.",
    },
}


@pytest.fixture
def sample_analysis() -> dict[str, Any]:
    """A three-layer analysis with three scenarios."""
    return copy.deepcopy(SAMPLE_ANALYSIS)


def make_png(width: int = 40, height: int = 30, color: str = "navy") -> bytes:
    """Small in-memory PNG."""
    out = io.BytesIO()
    Image.new("RGB", (width, height), color).save(out, format="PNG")
    return out.getvalue()


@pytest.fixture
def png_bytes() -> bytes:
    return make_png()


@pytest.fixture
def store(tmp_path: Path):
    """Partitioned file store rooted in a temp directory."""
    from cyclescope.services.storage import PartitionedFileStore

    return PartitionedFileStore(tmp_path / "data", retention_days=30)


@pytest.fixture
def fake_orchestrator(store) -> MagicMock:
    """Orchestrator double with a real status object and file store."""
    from cyclescope.services.pipeline import CaptureJobStatus

    orchestrator = MagicMock()
    orchestrator.store = store
    orchestrator.status = CaptureJobStatus()
    orchestrator.engine.chart_url = "https://example.com/chart"
    orchestrator.try_start_capture = MagicMock(return_value=True)
    orchestrator.capture_now = AsyncMock()
    orchestrator.analyze = AsyncMock()
    return orchestrator


@pytest.fixture
def client(fake_orchestrator: MagicMock) -> Generator[TestClient, None, None]:
    """Test client for the API app wired to the fake orchestrator."""
    from cyclescope.api.app import create_api_app

    app = create_api_app(orchestrator=fake_orchestrator)
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client


@pytest_asyncio.fixture
async def sqlite_db(tmp_path: Path) -> AsyncGenerator[str, None]:
    """Fresh SQLite database with the schema created."""
    import cyclescope.database.connection as db_conn

    await db_conn.close_database()
    url = f"sqlite+aiosqlite:///{tmp_path / 'cyclescope.db'}"
    assert await db_conn.init_database(url)
    yield url
    await db_conn.close_database()


@pytest.fixture
def png_factory():
    """Factory for PNGs of a given size."""
    return make_png
