"""Health check endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from cyclescope.api.dependencies import get_orchestrator
from cyclescope.core.config import settings
from cyclescope.core.dates import utc_timestamp
from cyclescope.repositories import analysis_orm
from cyclescope.schemas.analysis import HealthConfig, HealthResponse, JobStatus
from cyclescope.services.pipeline import CaptureOrchestrator


router = APIRouter()


async def _health(orchestrator: CaptureOrchestrator) -> HealthResponse:
    connected = await analysis_orm.check_connection()
    return HealthResponse(
        status="ok",
        service=settings.service_name,
        timestamp=utc_timestamp(),
        database="connected" if connected else "unavailable",
        config=HealthConfig(
            data_dir=str(orchestrator.store.root),
            retention_days=orchestrator.store.retention_days,
            chart_url=orchestrator.engine.chart_url or "",
        ),
        download_status=JobStatus(**orchestrator.status.to_dict()),
    )


@router.get(
    "/",
    response_model=HealthResponse,
    summary="Service info",
)
async def root(orchestrator: CaptureOrchestrator = Depends(get_orchestrator)) -> HealthResponse:
    return await _health(orchestrator)


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Service status, storage configuration and the capture job state.",
)
async def health_check(
    orchestrator: CaptureOrchestrator = Depends(get_orchestrator),
) -> HealthResponse:
    """
    Health check.

    Always ``ok`` while the process serves requests; ``database`` reports
    whether the analysis store answers.
    """
    return await _health(orchestrator)
