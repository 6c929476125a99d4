"""Instruction text sent with the chart image."""

from __future__ import annotations

ANALYSIS_INSTRUCTION = (
    "engine + all layers\n\n"
    "Analysis Date: {date}\n\n"
    "Analyze the attached chart and provide 3-layer analysis."
)


def build_analysis_prompt(date: str) -> str:
    """Text part of the user message for ``date`` (YYYY-MM-DD)."""
    return ANALYSIS_INSTRUCTION.format(date=date)
