"""ASGI entry point: ``uvicorn lacquer.main:app``."""

from __future__ import annotations

from .app import create_app
from .config import get_settings
from .logging_setup import setup_logging

settings = get_settings()
setup_logging(log_dir=settings.log_dir, console_level=settings.log_level)
app = create_app(settings)
