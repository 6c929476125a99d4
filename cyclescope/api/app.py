"""API application factory."""

from __future__ import annotations

import time
import uuid
from typing import Any

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from cyclescope.core.config import settings
from cyclescope.core.dates import utc_timestamp
from cyclescope.core.exceptions import register_exception_handlers
from cyclescope.core.logging import get_logger, request_id_var
from cyclescope.schemas.common import ErrorResponse

from .routes import analysis, capture, health


logger = get_logger("api")

AVAILABLE_ENDPOINTS = [
    "GET /",
    "GET /health",
    "GET /download-status",
    "POST /download",
    "POST /download-file",
    "POST /analyze",
    "GET /analysis/latest",
    "GET /latest-chart",
    "GET /annotated-chart",
]


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Add request ID to all requests for tracing."""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        request_id_var.set(request_id)

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id

        return response


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log method, path, status and duration of every request."""

    async def dispatch(self, request: Request, call_next):
        start_time = time.monotonic()

        response = await call_next(request)

        duration = time.monotonic() - start_time
        path = request.url.path

        logger.info(
            f"{request.method} {path} -> {response.status_code} ({duration:.3f}s)",
            extra={
                "method": request.method,
                "path": path,
                "status_code": response.status_code,
                "duration_ms": int(duration * 1000),
            },
        )

        return response


def _register_not_found_handler(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        body: dict[str, Any] = {
            "success": False,
            "error": exc.detail if exc.status_code != 404 else "Not found",
            "timestamp": utc_timestamp(),
        }
        if exc.status_code == 404:
            body["path"] = request.url.path
            body["availableEndpoints"] = AVAILABLE_ENDPOINTS
        return JSONResponse(status_code=exc.status_code, content=body, headers=exc.headers)


def create_api_app(orchestrator: Any = None, lifespan: Any = None) -> FastAPI:
    """
    Create and configure the API application.

    ``orchestrator`` is placed on ``app.state`` right away when given;
    otherwise the lifespan is expected to create it.
    """
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Daily secular-trend chart capture and analysis",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
        responses={
            404: {"model": ErrorResponse, "description": "Not Found"},
            500: {"model": ErrorResponse, "description": "Internal Server Error"},
        },
    )

    if orchestrator is not None:
        app.state.orchestrator = orchestrator

    # Middlewares (first added is innermost)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "X-Request-ID"],
        expose_headers=["X-Request-ID", "Content-Disposition"],
    )

    register_exception_handlers(app)
    _register_not_found_handler(app)

    app.include_router(health.router, tags=["Health"])
    app.include_router(capture.router, tags=["Capture"])
    app.include_router(analysis.router, tags=["Analysis"])

    return app
