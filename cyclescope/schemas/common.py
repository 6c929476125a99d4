"""Common schemas and error responses."""

from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Standard error body produced by the exception handlers."""

    success: bool = Field(default=False)
    error: str = Field(..., description="Human-readable error message")
    code: str = Field(..., description="Error code", examples=["CHART_NOT_FOUND"])
    timestamp: str = Field(..., description="ISO-8601 UTC timestamp")
    details: Optional[Dict[str, Any]] = Field(
        default=None, description="Additional error details"
    )

    model_config = {
        "json_schema_extra": {
            "example": {
                "success": False,
                "error": "Chart not found. Please run /download first.",
                "code": "CHART_NOT_FOUND",
                "timestamp": "2025-11-30T12:00:00.000000+00:00",
            }
        }
    }


class ConflictResponse(BaseModel):
    """Body returned when a capture is already running."""

    success: bool = Field(default=False)
    message: str = Field(..., examples=["Download already in progress"])
    status: Dict[str, Any] = Field(..., description="Current job status (camelCase)")
    timestamp: str
