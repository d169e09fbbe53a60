import logging
import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    document_path: str | None
    history_limit: int
    default_theme: str
    log_level: str


def get_settings() -> Settings:
    return Settings(
        document_path=os.getenv("CANVAS_ENGINE_DOCUMENT") or None,
        history_limit=int(os.getenv("CANVAS_ENGINE_HISTORY_LIMIT", "50")),
        default_theme=os.getenv("CANVAS_ENGINE_THEME", "light"),
        log_level=os.getenv("CANVAS_ENGINE_LOG_LEVEL", "WARNING").upper(),
    )


def configure_logging(settings: Settings | None = None) -> None:
    """Configure the root logger once for command-line entry points."""
    level = (settings or get_settings()).log_level
    logging.basicConfig(
        level=getattr(logging, level, logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
