"""API dependencies."""

from __future__ import annotations

from fastapi import Request

from cyclescope.core.exceptions import ConfigurationError
from cyclescope.services.pipeline import CaptureOrchestrator


def get_orchestrator(request: Request) -> CaptureOrchestrator:
    """The process-wide orchestrator created at startup."""
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise ConfigurationError("Orchestrator is not initialized")
    return orchestrator
