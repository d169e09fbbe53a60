from __future__ import annotations

from collections.abc import Iterable

from canvas_engine.models import Variable


def _normalize_name(name: str) -> str:
    return name.strip().removeprefix("$")


class VariableTable:
    """In-memory variable set with per-theme values.

    Implements the ``VariableResolver`` protocol.
    """

    def __init__(self, variables: Iterable[Variable] = (), active_theme: str = "light") -> None:
        self._variables: dict[str, Variable] = {v.id: v for v in variables}
        self._active_theme = active_theme

    @property
    def active_theme(self) -> str:
        return self._active_theme

    @active_theme.setter
    def active_theme(self, theme: str) -> None:
        self._active_theme = theme

    @property
    def variables(self) -> list[Variable]:
        return list(self._variables.values())

    def set_variables(self, variables: Iterable[Variable]) -> None:
        self._variables = {v.id: v for v in variables}

    def resolve_reference(self, reference: str, theme: str) -> tuple[str, str] | None:
        trimmed = reference.strip()
        if not trimmed.startswith("$"):
            return None
        wanted = _normalize_name(trimmed)
        if not wanted:
            return None
        for variable in self._variables.values():
            if variable.name in (trimmed, wanted) or _normalize_name(variable.name) == wanted:
                return variable.id, variable.value_for(theme)
        return None

    def resolve_id(self, variable_id: str, theme: str) -> str | None:
        variable = self._variables.get(variable_id)
        return variable.value_for(theme) if variable else None

    def lookup(self, theme: str | None = None) -> dict[str, str]:
        """Map every variable id to its value under ``theme``."""
        active = theme or self._active_theme
        return {v.id: v.value_for(active) for v in self._variables.values()}
