from typing import Protocol


class VariableResolver(Protocol):
    @property
    def active_theme(self) -> str: ...

    def resolve_reference(self, reference: str, theme: str) -> tuple[str, str] | None:
        """Map a ``$name`` token to ``(variable_id, value)`` for ``theme``."""
        ...

    def resolve_id(self, variable_id: str, theme: str) -> str | None: ...
