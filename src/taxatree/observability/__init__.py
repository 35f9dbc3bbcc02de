"""Observability helpers for taxatree batches."""

from .diagnostics import Diagnostic, DiagnosticsCollector, DiagnosticsSnapshot

__all__ = ["Diagnostic", "DiagnosticsCollector", "DiagnosticsSnapshot"]
