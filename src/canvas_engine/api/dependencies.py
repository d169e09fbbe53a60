from __future__ import annotations

from collections.abc import Iterator

from canvas_engine.core.document import Document
from canvas_engine.core.persistence import load_document, new_document
from canvas_engine.settings import get_settings

_document: Document | None = None


def get_document() -> Iterator[Document]:
    """Yield the served ``Document``, loading it lazily on first call."""
    global _document  # noqa: PLW0603
    if _document is None:
        settings = get_settings()
        _document = load_document(settings.document_path) if settings.document_path else new_document()
    yield _document


def reset_document() -> None:
    global _document  # noqa: PLW0603
    _document = None
