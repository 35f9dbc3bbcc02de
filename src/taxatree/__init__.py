"""Top-level package for building taxon trees from lineage strings."""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("taxatree")
except PackageNotFoundError:  # pragma: no cover - running from a source checkout
    __version__ = "0.1.0"

from .config.settings import Settings, get_settings
from .entities import IdOrigin, Item, LookupResult, Taxon, TaxonDescriptor
from .exceptions import (
    ConfigurationError,
    ConsistencyError,
    CycleError,
    ParseError,
    TaxaTreeError,
    TaxonLookupError,
)
from .pipeline import Classified, extract_taxonomy

__all__ = [
    "__version__",
    "Settings",
    "get_settings",
    "IdOrigin",
    "TaxonDescriptor",
    "Taxon",
    "Item",
    "LookupResult",
    "TaxaTreeError",
    "ConfigurationError",
    "ParseError",
    "TaxonLookupError",
    "ConsistencyError",
    "CycleError",
    "Classified",
    "extract_taxonomy",
]
