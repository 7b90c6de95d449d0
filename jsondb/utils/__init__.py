"""jsondb utilities package."""

from .logging import configure_file_logging, logger

__all__ = [
    "logger",
    "configure_file_logging",
]
