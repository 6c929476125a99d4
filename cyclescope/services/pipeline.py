"""
Capture / analyze / annotate / persist orchestration.

One ``CaptureOrchestrator`` lives on ``app.state`` for the lifetime of the
process and owns the job status that ``/download-status`` reports.

Usage:
    orchestrator = CaptureOrchestrator.from_settings()
    if orchestrator.try_start_capture("2025-11-30"):
        ...  # capture runs in the background
    outcome = await orchestrator.analyze("2025-11-30")
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Awaitable, Callable

from cyclescope.core.config import Settings, settings as default_settings
from cyclescope.core.dates import today_partition_key
from cyclescope.core.exceptions import ChartNotFoundError, ConflictError
from cyclescope.core.logging import get_logger
from cyclescope.repositories import analysis_orm
from cyclescope.services.annotator import ChartAnnotator
from cyclescope.services.capture import ChartCaptureEngine
from cyclescope.services.openai import ChartAssistant
from cyclescope.services.storage import (
    ANALYSIS_JSON,
    ANNOTATED_CHART,
    ORIGINAL_CHART,
    PartitionedFileStore,
)

logger = get_logger("pipeline")

SaveAnalysis = Callable[[dict[str, Any], str], Awaitable[dict[str, Any]]]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class CaptureJobStatus:
    """Process-local state of the capture job."""

    is_running: bool = False
    last_start_time: str | None = None
    last_end_time: str | None = None
    last_success: bool | None = None
    last_error: str | None = None
    last_file_path: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """camelCase view used by the HTTP API."""
        return {
            "isRunning": self.is_running,
            "lastStartTime": self.last_start_time,
            "lastEndTime": self.last_end_time,
            "lastSuccess": self.last_success,
            "lastError": self.last_error,
            "lastFilePath": self.last_file_path,
        }


@dataclass
class AnalysisOutcome:
    """Saved row plus the analysis payload it came from."""

    record: dict[str, Any]
    analysis: dict[str, Any]


class CaptureOrchestrator:
    """Single-flight capture job plus the analyze pipeline."""

    def __init__(
        self,
        store: PartitionedFileStore,
        engine: ChartCaptureEngine,
        assistant: ChartAssistant,
        annotator: ChartAnnotator,
        save_analysis: SaveAnalysis = analysis_orm.save_analysis,
    ):
        self.store = store
        self.engine = engine
        self.assistant = assistant
        self.annotator = annotator
        self._save_analysis = save_analysis
        self.status = CaptureJobStatus()
        self._tasks: set[asyncio.Task] = set()

    @classmethod
    def from_settings(cls, config: Settings | None = None) -> "CaptureOrchestrator":
        config = config or default_settings
        store = PartitionedFileStore(config.data_dir, config.retention_days)
        return cls(
            store=store,
            engine=ChartCaptureEngine.from_settings(store, config),
            assistant=ChartAssistant.from_settings(config),
            annotator=ChartAnnotator.from_settings(config),
        )

    # -------------------------------------------------------------------------
    # Capture
    # -------------------------------------------------------------------------

    def _mark_started(self) -> None:
        self.status.is_running = True
        self.status.last_start_time = _now()
        self.status.last_error = None

    def _mark_finished(self, path: Path | None, error: Exception | None) -> None:
        if error is None and path is not None:
            self.status.last_success = True
            self.status.last_file_path = str(path)
        else:
            # No path and no error: the task was cancelled mid-capture.
            self.status.last_success = False
            self.status.last_error = str(error) if error else "Capture cancelled"
        self.status.is_running = False
        self.status.last_end_time = _now()

    def try_start_capture(self, date: str | None = None) -> bool:
        """
        Start a background capture unless one is already running.

        The flag is checked and set before any await, so two requests on
        the same event loop can never both start a capture.
        """
        if self.status.is_running:
            return False

        self._mark_started()
        task = asyncio.create_task(self._run_capture(date or today_partition_key()))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return True

    async def _run_capture(self, date: str) -> None:
        path: Path | None = None
        error: Exception | None = None
        try:
            path = await self.engine.capture_with_retry(date)
            logger.info(f"Background capture finished: {path}")
        except Exception as e:
            logger.error(f"Background capture failed: {e}")
            error = e
        finally:
            self._mark_finished(path, error)

        if error is None:
            await self._prune()

    async def _prune(self) -> None:
        try:
            removed = await self.store.prune_async()
            if removed:
                logger.info(f"Pruned {removed} old partition(s)")
        except Exception as e:
            logger.warning(f"Cleanup of old partitions failed: {e}")

    async def capture_now(self, date: str | None = None) -> Path:
        """
        Capture in the request and return the PNG path.

        Raises:
            ConflictError: a capture is already running
            CaptureError: every attempt failed
        """
        if self.status.is_running:
            raise ConflictError(
                "Download already in progress",
                details={"status": self.status.to_dict()},
            )

        self._mark_started()
        path: Path | None = None
        error: Exception | None = None
        try:
            path = await self.engine.capture_with_retry(date or today_partition_key())
            return path
        except Exception as e:
            error = e
            raise
        finally:
            self._mark_finished(path, error)

    async def wait_for_background(self) -> None:
        """Await any capture tasks still running (shutdown and tests)."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # -------------------------------------------------------------------------
    # Analysis
    # -------------------------------------------------------------------------

    async def analyze(self, date: str | None = None) -> AnalysisOutcome:
        """
        Analyze the chart captured for ``date``, annotate it and persist.

        Annotation is optional: any failure there leaves
        ``annotated_chart_url`` empty instead of failing the request.

        Raises:
            ChartNotFoundError: no chart captured for the date
            AnalysisError: the assistant did not produce a usable result
            StorageError: the upsert failed
        """
        date = date or today_partition_key()
        chart_path = self.store.file_path(ORIGINAL_CHART, date)
        if not chart_path.is_file():
            raise ChartNotFoundError(details={"date": date})

        logger.info(f"Analyzing chart for {date}")
        analysis = await self.assistant.analyze(chart_path, date)
        await self.store.save_json(ANALYSIS_JSON, analysis, date)

        payload: dict[str, Any] = {
            **analysis,
            "original_chart_url": str(chart_path),
            "annotated_chart_url": await self._annotate(chart_path, date, analysis["layer3"]),
        }

        record = await self._save_analysis(payload, date)
        return AnalysisOutcome(record=record, analysis=analysis)

    async def _annotate(self, chart_path: Path, date: str, layer3: dict[str, Any]) -> str | None:
        output = self.store.file_path(ANNOTATED_CHART, date)
        try:
            path = await self.annotator.annotate(chart_path, output, layer3)
            return str(path)
        except Exception as e:
            logger.warning(f"Annotation failed, continuing without annotated chart: {e}")
            return None
