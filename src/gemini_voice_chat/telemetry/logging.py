"""Logging setup for the terminal front-end."""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

_HANDLER_NAME = "gemini_voice_chat.rich"


def configure_logging(level: str = "INFO", *, console: Console | None = None) -> logging.Logger:
    """Attach a single rich handler to the package logger."""
    logger = logging.getLogger("gemini_voice_chat")
    logger.setLevel(level.upper())
    if not any(handler.get_name() == _HANDLER_NAME for handler in logger.handlers):
        handler = RichHandler(console=console or Console(stderr=True), show_path=False, rich_tracebacks=True)
        handler.set_name(_HANDLER_NAME)
        logger.addHandler(handler)
    return logger
