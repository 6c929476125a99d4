"""Overlay dismissal table for the chart page.

Charting sites put subscription prompts, cookie banners and promo dialogs
over the chart. The rules below are evaluated in order on every dismissal
attempt; each matching element gets the rule's action. Markup on the remote
page changes often, so this table is expected to be edited independently
of the capture engine, or replaced at runtime with
``CAPTURE_OVERLAY_SELECTORS``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Sequence

OverlayAction = Literal["click", "remove"]


@dataclass(frozen=True)
class OverlayRule:
    """A CSS/Playwright selector and what to do with each match."""

    selector: str
    action: OverlayAction = "click"
    label: str = ""

    @property
    def name(self) -> str:
        return self.label or self.selector


# Subscription and sign-up prompts first, then generic close buttons.
DEFAULT_OVERLAY_RULES: tuple[OverlayRule, ...] = (
    OverlayRule('[data-dialog-name="gopro"] button[aria-label="Close"]', label="go-pro prompt"),
    OverlayRule('button:has-text("No, thanks")', label="subscription prompt"),
    OverlayRule('button:has-text("Maybe later")', label="subscription prompt"),
    OverlayRule('button:has-text("Accept all")', label="cookie banner"),
    OverlayRule('button[aria-label="Close"]', label="close button"),
    OverlayRule('button[data-name="close"]', label="close button"),
    OverlayRule(".tv-dialog__close", label="dialog close"),
    OverlayRule('[data-role="button"][aria-label="Close"]', label="close role button"),
    OverlayRule('button:has-text("×")', label="close glyph"),
    OverlayRule("button.close", label="close button"),
    OverlayRule('[class*="close"]', label="close class"),
)

# Quick pass right before the screenshot.
FINAL_PASS_RULES: tuple[OverlayRule, ...] = (
    OverlayRule('button[aria-label="Close"]', label="close button"),
)


def rules_from_selectors(selectors: Sequence[str]) -> tuple[OverlayRule, ...]:
    """Build click rules from plain selectors (settings override)."""
    return tuple(OverlayRule(selector) for selector in selectors if selector)
