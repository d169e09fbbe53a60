from collections.abc import Mapping
from typing import Any, Protocol


class TextMeasurer(Protocol):
    def measure_auto(self, node: Mapping[str, Any]) -> tuple[float, float]: ...

    def measure_fixed_height(self, node: Mapping[str, Any]) -> float: ...
