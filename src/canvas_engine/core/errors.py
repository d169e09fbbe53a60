from __future__ import annotations


class CanvasEngineError(Exception):
    """Base class for document engine failures."""


class ScriptParseError(CanvasEngineError):
    """An operations script could not be parsed; nothing was executed."""

    def __init__(self, message: str, line: int | None = None) -> None:
        self.line = line
        super().__init__(f"Line {line}: {message}" if line is not None else message)


class ExecutionError(CanvasEngineError):
    """An operation failed against the working copy; the batch is rolled back."""

    def __init__(self, message: str, line: int | None = None) -> None:
        self.line = line
        super().__init__(f"Line {line}: {message}" if line is not None else message)


class DocumentFormatError(CanvasEngineError):
    """A document file is not valid canvas JSON."""
