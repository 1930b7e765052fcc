"""Utility helpers shared across keying modules."""

from .helpers import clean_text, coerce_identifier, ensure_directory, write_json
from .logging import configure_logging, get_logger, logging_context

__all__ = [
    "configure_logging",
    "get_logger",
    "logging_context",
    "coerce_identifier",
    "clean_text",
    "ensure_directory",
    "write_json",
]
