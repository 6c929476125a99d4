"""Request/response schemas for capture and analysis endpoints."""

from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Serialized with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class JobStatus(CamelModel):
    is_running: bool = False
    last_start_time: Optional[str] = None
    last_end_time: Optional[str] = None
    last_success: Optional[bool] = None
    last_error: Optional[str] = None
    last_file_path: Optional[str] = None


class HealthConfig(CamelModel):
    data_dir: str
    retention_days: int
    chart_url: str


class HealthResponse(CamelModel):
    """Health check response."""

    status: str = Field(default="ok")
    service: str
    timestamp: str
    database: str = Field(..., description="connected or unavailable")
    config: HealthConfig
    download_status: JobStatus


class DownloadStatusResponse(BaseModel):
    success: bool = True
    status: JobStatus
    timestamp: str


class DownloadAcceptedResponse(CamelModel):
    """202 body for a started background capture."""

    success: bool = True
    message: str
    date: str
    status: str = "processing"
    timestamp: str
    status_url: str = "/download-status"


class AnalysisLayers(BaseModel):
    layer1: Dict[str, Any]
    layer2: Dict[str, Any]
    layer3: Dict[str, Any]


class AnalyzeResponse(CamelModel):
    success: bool = True
    message: str
    date: str
    record_id: int
    analysis: AnalysisLayers
    annotated_chart_url: Optional[str] = None
    timestamp: str


class LatestAnalysisResponse(BaseModel):
    success: bool = True
    analysis: Dict[str, Any] = Field(..., description="Flattened secular_analysis row")
    timestamp: str
