"""API routes package."""

from . import analysis, capture, health


__all__ = [
    "analysis",
    "capture",
    "health",
]
