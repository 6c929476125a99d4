"""Pydantic schemas for the HTTP API."""

from cyclescope.schemas.analysis import (
    AnalyzeResponse,
    DownloadAcceptedResponse,
    DownloadStatusResponse,
    HealthResponse,
    JobStatus,
    LatestAnalysisResponse,
)
from cyclescope.schemas.common import ConflictResponse, ErrorResponse


__all__ = [
    "AnalyzeResponse",
    "ConflictResponse",
    "DownloadAcceptedResponse",
    "DownloadStatusResponse",
    "ErrorResponse",
    "HealthResponse",
    "JobStatus",
    "LatestAnalysisResponse",
]
