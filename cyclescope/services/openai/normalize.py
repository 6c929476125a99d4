"""Parsing and key normalization for the assistant's three-layer JSON."""

from __future__ import annotations

import json
import re
from typing import Any

from cyclescope.core.exceptions import MalformedResponseError

REQUIRED_LAYERS = ("layer1", "layer2", "layer3")

_KEY_NOISE = re.compile(r"[\s_-]+")
_CODE_FENCE = re.compile(r"```(?:json)?\s*([\s\S]*?)```")


def normalize_key(key: str) -> str:
    """'Layer 1', 'layer_1' and 'layer1' all become 'layer1'."""
    return _KEY_NOISE.sub("", key).lower()


def normalize_layer_keys(data: dict[str, Any]) -> dict[str, Any]:
    """Normalize every top-level key of the assistant payload."""
    return {normalize_key(str(key)): value for key, value in data.items()}


def parse_analysis(raw: str) -> dict[str, Any]:
    """
    Parse assistant text into ``{"layer1", "layer2", "layer3"}``.

    Raises:
        MalformedResponseError: invalid JSON, not an object, or a layer is
            missing after key normalization
    """
    text = raw.strip()
    fenced = _CODE_FENCE.search(text)
    if fenced:
        text = fenced.group(1).strip()

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedResponseError(
            f"Failed to parse assistant response: {e}",
            details={"preview": raw[:500]},
        ) from e

    if not isinstance(data, dict):
        raise MalformedResponseError("Assistant response is not a JSON object")

    normalized = normalize_layer_keys(data)

    missing = [layer for layer in REQUIRED_LAYERS if not isinstance(normalized.get(layer), dict)]
    if missing:
        raise MalformedResponseError(
            "Response missing required layers (layer1, layer2, layer3)",
            details={"missing": missing, "keys": sorted(normalized)},
        )

    return {layer: normalized[layer] for layer in REQUIRED_LAYERS}
