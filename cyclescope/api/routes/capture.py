"""Chart capture endpoints."""

from __future__ import annotations

import asyncio

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse, Response

from cyclescope.api.dependencies import get_orchestrator
from cyclescope.core.dates import today_partition_key, utc_timestamp
from cyclescope.core.logging import get_logger
from cyclescope.schemas.analysis import (
    DownloadAcceptedResponse,
    DownloadStatusResponse,
    JobStatus,
)
from cyclescope.schemas.common import ConflictResponse, ErrorResponse
from cyclescope.services.pipeline import CaptureOrchestrator


router = APIRouter()

logger = get_logger("api.capture")

CONFLICT_MESSAGE = "Download already in progress"


def _conflict(orchestrator: CaptureOrchestrator) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={
            "success": False,
            "message": CONFLICT_MESSAGE,
            "status": orchestrator.status.to_dict(),
            "timestamp": utc_timestamp(),
        },
    )


@router.get(
    "/download-status",
    response_model=DownloadStatusResponse,
    summary="Capture job status",
)
async def download_status(
    orchestrator: CaptureOrchestrator = Depends(get_orchestrator),
) -> DownloadStatusResponse:
    return DownloadStatusResponse(
        status=JobStatus(**orchestrator.status.to_dict()),
        timestamp=utc_timestamp(),
    )


@router.post(
    "/download",
    response_model=DownloadAcceptedResponse,
    status_code=status.HTTP_202_ACCEPTED,
    responses={409: {"model": ConflictResponse, "description": "Capture already running"}},
    summary="Start a background chart capture",
)
async def start_download(
    orchestrator: CaptureOrchestrator = Depends(get_orchestrator),
):
    """
    Start capturing today's chart in the background.

    Poll ``/download-status`` for the result.
    """
    date = today_partition_key()
    if not orchestrator.try_start_capture(date):
        logger.info("Download requested while a capture is running")
        return _conflict(orchestrator)

    return DownloadAcceptedResponse(
        message="Download started in background",
        date=date,
        timestamp=utc_timestamp(),
    )


@router.post(
    "/download-file",
    response_class=Response,
    responses={
        200: {"content": {"image/png": {}}, "description": "The captured chart"},
        409: {"model": ConflictResponse, "description": "Capture already running"},
        500: {"model": ErrorResponse, "description": "Capture failed"},
    },
    summary="Capture the chart and return the PNG",
)
async def download_file(
    orchestrator: CaptureOrchestrator = Depends(get_orchestrator),
):
    """Capture synchronously and return the PNG as an attachment."""
    if orchestrator.status.is_running:
        return _conflict(orchestrator)

    date = today_partition_key()
    path = await orchestrator.capture_now(date)
    content = await asyncio.to_thread(path.read_bytes)

    return Response(
        content=content,
        media_type="image/png",
        headers={"Content-Disposition": f'attachment; filename="chart-{date}.png"'},
    )
