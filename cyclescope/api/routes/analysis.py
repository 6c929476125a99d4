"""Analysis endpoints and chart retrieval."""

from __future__ import annotations

import asyncio
from decimal import Decimal
from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import Response

from cyclescope.api.dependencies import get_orchestrator
from cyclescope.core.dates import today_partition_key, utc_timestamp
from cyclescope.core.exceptions import NotFoundError
from cyclescope.repositories import analysis_orm
from cyclescope.schemas.analysis import (
    AnalysisLayers,
    AnalyzeResponse,
    LatestAnalysisResponse,
)
from cyclescope.schemas.common import ErrorResponse
from cyclescope.services.pipeline import CaptureOrchestrator
from cyclescope.services.storage import ANNOTATED_CHART, ORIGINAL_CHART


router = APIRouter()


def serialize_record(record: dict[str, Any]) -> dict[str, Any]:
    """Decimals as floats for JSON."""
    return {
        key: float(value) if isinstance(value, Decimal) else value
        for key, value in record.items()
    }


@router.post(
    "/analyze",
    response_model=AnalyzeResponse,
    responses={
        404: {"model": ErrorResponse, "description": "No chart captured for today"},
        502: {"model": ErrorResponse, "description": "Analysis failed"},
        500: {"model": ErrorResponse, "description": "Storage failed"},
    },
    summary="Analyze today's chart",
)
async def analyze_chart(
    orchestrator: CaptureOrchestrator = Depends(get_orchestrator),
) -> AnalyzeResponse:
    """
    Run the assistant on today's chart, annotate it and store the result.

    The chart must have been captured first via ``/download``.
    """
    date = today_partition_key()
    outcome = await orchestrator.analyze(date)

    return AnalyzeResponse(
        message="Analysis completed and saved to database",
        date=date,
        record_id=outcome.record["id"],
        analysis=AnalysisLayers(**outcome.analysis),
        annotated_chart_url=outcome.record.get("annotated_chart_url"),
        timestamp=utc_timestamp(),
    )


@router.get(
    "/analysis/latest",
    response_model=LatestAnalysisResponse,
    responses={404: {"model": ErrorResponse, "description": "No analysis stored"}},
    summary="Latest stored analysis",
)
async def latest_analysis() -> LatestAnalysisResponse:
    record = await analysis_orm.get_latest_analysis()
    if record is None:
        raise NotFoundError("No analysis found")
    return LatestAnalysisResponse(
        analysis=serialize_record(record),
        timestamp=utc_timestamp(),
    )


async def _latest_chart(
    orchestrator: CaptureOrchestrator, filename: str, download_name: str
) -> Response:
    record = await analysis_orm.get_latest_analysis()
    if record is None:
        raise NotFoundError("No analysis found")

    date = record["asof_date"]
    path = orchestrator.store.file_path(filename, date)
    if not path.is_file():
        raise NotFoundError("Chart file not found", details={"date": date})

    content = await asyncio.to_thread(path.read_bytes)
    return Response(
        content=content,
        media_type="image/png",
        headers={"Content-Disposition": f'inline; filename="{download_name}-{date}.png"'},
    )


@router.get(
    "/latest-chart",
    response_class=Response,
    responses={
        200: {"content": {"image/png": {}}},
        404: {"model": ErrorResponse},
    },
    summary="Original chart of the latest analysis",
)
async def latest_chart(orchestrator: CaptureOrchestrator = Depends(get_orchestrator)):
    return await _latest_chart(orchestrator, ORIGINAL_CHART, "chart")


@router.get(
    "/annotated-chart",
    response_class=Response,
    responses={
        200: {"content": {"image/png": {}}},
        404: {"model": ErrorResponse},
    },
    summary="Annotated chart of the latest analysis",
)
async def annotated_chart(orchestrator: CaptureOrchestrator = Depends(get_orchestrator)):
    return await _latest_chart(orchestrator, ANNOTATED_CHART, "annotated-chart")
