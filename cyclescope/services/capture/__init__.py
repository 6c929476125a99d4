"""Headless-browser chart capture."""

from cyclescope.services.capture.engine import (
    ChartCaptureEngine,
    crop_screenshot,
    dismiss_overlays,
)
from cyclescope.services.capture.overlays import (
    DEFAULT_OVERLAY_RULES,
    OverlayRule,
    rules_from_selectors,
)


__all__ = [
    "ChartCaptureEngine",
    "DEFAULT_OVERLAY_RULES",
    "OverlayRule",
    "crop_screenshot",
    "dismiss_overlays",
    "rules_from_selectors",
]
