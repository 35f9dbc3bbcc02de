"""Command-line interface for taxatree."""

from .main import app

__all__ = ["app"]
