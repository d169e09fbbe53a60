from typing import Protocol

from canvas_engine.models import SceneNode


class LayoutSolver(Protocol):
    def intrinsic_size(self, frame: SceneNode, fit_width: bool, fit_height: bool) -> tuple[float, float]: ...
