from __future__ import annotations

import math
from collections.abc import Mapping
from typing import Any

from canvas_engine.core.ports.text import TextMeasurer

# Properties whose change alters a text node's measured box.
TEXT_MEASURE_PROPS: frozenset[str] = frozenset(
    {"text", "fontSize", "fontFamily", "fontWeight", "fontStyle", "letterSpacing", "lineHeight", "textWidthMode"}
)

_DEFAULT_FONT_SIZE = 16.0
_DEFAULT_LINE_HEIGHT = 1.2
_AVERAGE_GLYPH_RATIO = 0.6
_BOLD_GLYPH_RATIO = 0.66


class EstimatedTextMeasurer:
    """Approximate glyph metrics for headless use.

    Implements the ``TextMeasurer`` protocol with a fixed average advance per
    character, so results are deterministic without a font rasteriser.
    """

    def _advance(self, node: Mapping[str, Any]) -> float:
        size = float(node.get("fontSize") or _DEFAULT_FONT_SIZE)
        weight = str(node.get("fontWeight") or "normal")
        heavy = weight == "bold" or (weight.isdigit() and int(weight) >= 600)
        return size * (_BOLD_GLYPH_RATIO if heavy else _AVERAGE_GLYPH_RATIO)

    def _line_width(self, line: str, node: Mapping[str, Any]) -> float:
        spacing = float(node.get("letterSpacing") or 0)
        return len(line) * self._advance(node) + max(0, len(line) - 1) * spacing

    def _line_height(self, node: Mapping[str, Any]) -> float:
        size = float(node.get("fontSize") or _DEFAULT_FONT_SIZE)
        return size * float(node.get("lineHeight") or _DEFAULT_LINE_HEIGHT)

    def measure_auto(self, node: Mapping[str, Any]) -> tuple[float, float]:
        lines = str(node.get("text") or "").split("\n")
        width = max(self._line_width(line, node) for line in lines)
        return math.ceil(width), math.ceil(len(lines) * self._line_height(node))

    def measure_fixed_height(self, node: Mapping[str, Any]) -> float:
        max_width = float(node.get("width") or 0)
        total_lines = 0
        for paragraph in str(node.get("text") or "").split("\n"):
            words = paragraph.split()
            if not words:
                total_lines += 1
                continue
            current = ""
            lines = 1
            for word in words:
                candidate = f"{current} {word}" if current else word
                if current and self._line_width(candidate, node) > max_width:
                    lines += 1
                    current = word
                else:
                    current = candidate
            total_lines += lines
        return math.ceil(total_lines * self._line_height(node))


def sync_text_dimensions(record: dict[str, Any], measurer: TextMeasurer) -> dict[str, Any]:
    """Return ``record`` with width/height re-derived from its text content."""
    if record.get("type") != "text":
        return record
    mode = record.get("textWidthMode")
    if not mode or mode == "auto":
        width, height = measurer.measure_auto(record)
        return {**record, "width": width, "height": height}
    if mode == "fixed":
        return {**record, "height": measurer.measure_fixed_height(record)}
    return record


def affects_text_measure(patch: Mapping[str, Any]) -> bool:
    return any(key in TEXT_MEASURE_PROPS or key == "width" for key in patch)
