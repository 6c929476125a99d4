"""
Chart annotation via Gemini image generation.

Overlays the layer 3 summary on the captured chart as a HUD-style text box
without touching the price data.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from cyclescope.core.config import Settings, settings as default_settings
from cyclescope.core.exceptions import AnnotationError, ConfigurationError
from cyclescope.core.logging import get_logger

logger = get_logger("annotator")

DEFAULT_MODEL = "gemini-3-pro-image-preview"
DEFAULT_IMAGE_SIZE = "2K"

ANNOTATION_PROMPT = """
You are a specialized financial charting assistant.

TASK:
The user has provided a list of NOTES or SCENARIOS below.
Your job is to overlay these notes as a clean, bulleted list on the chart image.

INPUT NOTES:
"{notes}"

VISUALIZATION RULES:
1. NO DRAWING ON CANDLES: Do NOT draw arrows, trendlines, curves, or prediction paths. Do not touch the price action/candles.
2. OVERLAY BOX: Create a semi-transparent dark background box (like a "Heads Up Display" or Legend).
3. PLACEMENT: Place this box in an empty area of the chart (preferably top-left or bottom-left) where it DOES NOT OBSCURE the recent price candles (usually on the right).
4. CONTENT: Inside the box, render the provided inputs as a crisp, readable BULLETED LIST.
5. STYLE: Use bright white text for high contrast. Use a professional sans-serif font.
6. FONT SIZE: CRITICAL - USE A VERY SMALL, COMPACT FONT SIZE (approx 10px). The text must be legible but minimize screen real estate usage.

STRICT CONSTRAINTS (CRITICAL):
1. DATA INTEGRITY IS PARAMOUNT: The underlying chart (candlesticks, price numbers on the axis, dates, grid lines, background color) must remain VISUALLY IDENTICAL to the source image provided.
2. DO NOT REDRAW THE DATA: Do not regenerate the candlesticks or change the last closing price. The chart data must be preserved exactly as is.
3. ADDITIVE ONLY: Your job is to ADD the text overlay box on top of the existing image.
4. TEXT ACCURACY: Ensure all superimposed text is SPELLED CORRECTLY.

EXECUTION:
Generate a new image that acts as a perfect copy of the original with the requested text overlay layered on top.
""".strip()


def format_overlay_text(layer3: dict[str, Any]) -> str:
    """Bullet the scenario summaries, then a blank line and the primary message."""
    lines = [f"• {summary}" for summary in layer3.get("scenario_summary") or []]
    text = "\n".join(lines)
    primary = layer3.get("primary_message")
    if primary:
        text += f"\n\n{primary}"
    return text.strip()


def build_annotation_prompt(layer3: dict[str, Any]) -> str:
    return ANNOTATION_PROMPT.format(notes=format_overlay_text(layer3))


def extract_image(response: Any) -> bytes:
    """
    Return the first inline image from a generate_content response.

    Raises:
        AnnotationError: no candidates, a text-only answer, or no image part
    """
    candidates = getattr(response, "candidates", None) or []
    content = getattr(candidates[0], "content", None) if candidates else None
    parts = getattr(content, "parts", None) if content else None
    if not parts:
        raise AnnotationError("No content returned from Gemini")

    for part in parts:
        inline = getattr(part, "inline_data", None)
        if inline is not None and inline.data:
            return inline.data

    text = next((p.text for p in parts if getattr(p, "text", None)), None)
    if text:
        raise AnnotationError(f"Model returned text instead of image: {text}")
    raise AnnotationError("Model did not return a valid image")


class ChartAnnotator:
    """Gemini image-edit client."""

    def __init__(
        self,
        client: genai.Client | None = None,
        *,
        api_key: str = "",
        model: str = DEFAULT_MODEL,
        image_size: str = DEFAULT_IMAGE_SIZE,
    ):
        self._client = client
        self._api_key = api_key
        self.model = model
        self.image_size = image_size

    @classmethod
    def from_settings(cls, config: Settings | None = None) -> "ChartAnnotator":
        config = config or default_settings
        return cls(
            api_key=config.gemini_api_key,
            model=config.gemini_model,
            image_size=config.gemini_image_size,
        )

    @property
    def client(self) -> genai.Client:
        if self._client is None:
            if not self._api_key:
                raise ConfigurationError("GEMINI_API_KEY is required")
            self._client = genai.Client(api_key=self._api_key)
        return self._client

    async def annotate(
        self,
        input_path: str | Path,
        output_path: str | Path,
        layer3: dict[str, Any],
    ) -> Path:
        """
        Write an annotated copy of ``input_path`` to ``output_path``.

        Raises:
            AnnotationError: input missing, API failure, or no image returned
            ConfigurationError: no API key configured
        """
        source = Path(input_path)
        target = Path(output_path)
        if not source.is_file():
            raise AnnotationError(f"Input chart not found: {source}")

        logger.info(f"Annotating chart {source} -> {target}")
        prompt = build_annotation_prompt(layer3)
        image = await asyncio.to_thread(source.read_bytes)

        try:
            response = await self.client.aio.models.generate_content(
                model=self.model,
                contents=[
                    types.Part.from_bytes(data=image, mime_type="image/png"),
                    prompt,
                ],
                config=types.GenerateContentConfig(
                    response_modalities=["IMAGE", "TEXT"],
                    image_config=types.ImageConfig(image_size=self.image_size),
                ),
            )
        except genai_errors.APIError as e:
            raise AnnotationError(f"Gemini request failed: {e}") from e

        data = extract_image(response)

        def _write() -> None:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)

        await asyncio.to_thread(_write)
        logger.info(f"Annotated chart saved: {target} ({len(data)} bytes)")
        return target
