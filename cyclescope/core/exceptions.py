"""Custom exceptions and centralized exception handlers."""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from .dates import utc_timestamp


class AppException(Exception):
    """Base application exception with structured error response."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code: str = "INTERNAL_ERROR"
    message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: str | None = None,
        error_code: str | None = None,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message or self.message
        self.error_code = error_code or self.error_code
        self.status_code = status_code or self.status_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the service's `{success: false, error, timestamp}` body."""
        return {
            "success": False,
            "error": self.message,
            "code": self.error_code,
            "timestamp": utc_timestamp(),
            **({"details": self.details} if self.details else {}),
        }


class NotFoundError(AppException):
    """Resource not found."""

    status_code = status.HTTP_404_NOT_FOUND
    error_code = "NOT_FOUND"
    message = "Resource not found"


class ChartNotFoundError(NotFoundError):
    """No captured chart for the requested date."""

    error_code = "CHART_NOT_FOUND"
    message = "Chart not found. Please run /download first."


class ConflictError(AppException):
    """Resource conflict."""

    status_code = status.HTTP_409_CONFLICT
    error_code = "CONFLICT"
    message = "Resource conflict"


class ConfigurationError(AppException):
    """Required credentials or URLs are not configured."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code = "CONFIGURATION_ERROR"
    message = "Service is not configured"


class CaptureError(AppException):
    """Chart capture failed (navigation timeout, browser crash, missing target)."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code = "CAPTURE_ERROR"
    message = "Chart capture failed"


class ExternalServiceError(AppException):
    """External service error."""

    status_code = status.HTTP_502_BAD_GATEWAY
    error_code = "EXTERNAL_SERVICE_ERROR"
    message = "External service request failed"


class AnalysisError(ExternalServiceError):
    """The chart analysis assistant did not produce a usable result."""

    error_code = "ANALYSIS_ERROR"
    message = "Chart analysis failed"

    def __init__(self, message: str | None = None, remote_status: str | None = None, **kwargs: Any):
        self.remote_status = remote_status
        details = kwargs.pop("details", None) or {}
        if remote_status:
            details.setdefault("remoteStatus", remote_status)
        super().__init__(message, details=details, **kwargs)


class RunFailedError(AnalysisError):
    """Assistant run ended failed, cancelled or expired."""

    error_code = "ANALYSIS_RUN_FAILED"


class RunTimeoutError(AnalysisError):
    """Assistant run did not reach a terminal state in time."""

    error_code = "ANALYSIS_TIMEOUT"
    status_code = status.HTTP_504_GATEWAY_TIMEOUT


class MalformedResponseError(AnalysisError):
    """Assistant answered with invalid JSON or without the three layers."""

    error_code = "ANALYSIS_MALFORMED"


class AnnotationError(ExternalServiceError):
    """Image generation did not return an annotated chart."""

    error_code = "ANNOTATION_ERROR"
    message = "Chart annotation failed"


class StorageError(AppException):
    """Database read or write failed."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code = "STORAGE_ERROR"
    message = "Database operation failed"


def register_exception_handlers(app: FastAPI) -> None:
    """Register centralized exception handlers."""

    @app.exception_handler(AppException)
    async def app_exception_handler(
        request: Request, exc: AppException
    ) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_dict(),
            headers={"X-Request-ID": getattr(request.state, "request_id", "unknown")},
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        import logging

        logger = logging.getLogger("cyclescope.error")
        logger.exception(
            "Unhandled exception",
            extra={
                "request_id": getattr(request.state, "request_id", "unknown"),
                "path": request.url.path,
                "method": request.method,
            },
        )

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "success": False,
                "error": str(exc) or exc.__class__.__name__,
                "code": "INTERNAL_ERROR",
                "timestamp": utc_timestamp(),
            },
            headers={"X-Request-ID": getattr(request.state, "request_id", "unknown")},
        )
