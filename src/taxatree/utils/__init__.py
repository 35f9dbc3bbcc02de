"""Utility helpers shared across taxatree modules."""

from .helpers import (
    chunked,
    ensure_directory,
    normalize_whitespace,
    serialize_json,
    unique_in_order,
)
from .logging import configure_logging, get_logger, log_timing, logging_context

__all__ = [
    "configure_logging",
    "get_logger",
    "logging_context",
    "log_timing",
    "normalize_whitespace",
    "ensure_directory",
    "serialize_json",
    "unique_in_order",
    "chunked",
]
