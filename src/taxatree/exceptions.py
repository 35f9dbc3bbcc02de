"""Exception hierarchy shared by every taxatree component."""

from __future__ import annotations

from typing import Any


class TaxaTreeError(Exception):
    """Base class for all taxatree failures."""


class ConfigurationError(TaxaTreeError, ValueError):
    """Raised before any processing when the configuration cannot be honoured."""


class ParseError(TaxaTreeError, ValueError):
    """Raised when a record does not match the expected delimiter structure."""

    def __init__(self, message: str, *, record: Any = None) -> None:
        super().__init__(message)
        self.record = record


class TaxonLookupError(TaxaTreeError, LookupError):
    """Raised when a taxon cannot be identified under the active ID policy.

    Subclasses the builtin :class:`LookupError` so callers may catch either.
    """

    def __init__(self, message: str, *, key: Any = None) -> None:
        super().__init__(message)
        self.key = key


class ConsistencyError(TaxaTreeError):
    """Raised when a taxon-scoped column disagrees across items of one taxon."""

    def __init__(self, message: str, *, column: str, taxon: Any) -> None:
        super().__init__(message)
        self.column = column
        self.taxon = taxon


class CycleError(TaxaTreeError):
    """Raised when a parent chain fails to terminate at a root."""


__all__ = [
    "TaxaTreeError",
    "ConfigurationError",
    "ParseError",
    "TaxonLookupError",
    "ConsistencyError",
    "CycleError",
]
