"""
OpenAI assistant integration for chart analysis.

Usage:
    from cyclescope.services.openai import (
        ChartAssistant,
        RunState,
        next_state,
        parse_analysis,
    )
"""

from cyclescope.services.openai.assistant import ChartAssistant
from cyclescope.services.openai.normalize import (
    REQUIRED_LAYERS,
    normalize_key,
    normalize_layer_keys,
    parse_analysis,
)
from cyclescope.services.openai.polling import RunState, next_state, poll_run
from cyclescope.services.openai.prompts import build_analysis_prompt


__all__ = [
    "ChartAssistant",
    "REQUIRED_LAYERS",
    "RunState",
    "build_analysis_prompt",
    "next_state",
    "normalize_key",
    "normalize_layer_keys",
    "parse_analysis",
    "poll_run",
]
