"""Core infrastructure: settings, logging, exceptions, dates."""

from .config import Settings, get_settings, settings, validate_config
from .exceptions import (
    AnalysisError,
    AnnotationError,
    AppException,
    CaptureError,
    ChartNotFoundError,
    ConfigurationError,
    ConflictError,
    ExternalServiceError,
    MalformedResponseError,
    NotFoundError,
    RunFailedError,
    RunTimeoutError,
    StorageError,
)


__all__ = [
    "AnalysisError",
    "AnnotationError",
    "AppException",
    "CaptureError",
    "ChartNotFoundError",
    "ConfigurationError",
    "ConflictError",
    "ExternalServiceError",
    "MalformedResponseError",
    "NotFoundError",
    "RunFailedError",
    "RunTimeoutError",
    "Settings",
    "StorageError",
    "get_settings",
    "settings",
    "validate_config",
]
