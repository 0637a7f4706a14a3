"""Utility helpers for AI translations."""

from .logging_config import setup_logging
from .structured_text import extract_text_values, reconstruct_object

__all__ = [
    "setup_logging",
    "extract_text_values",
    "reconstruct_object",
]
