"""Domain entities for taxatree."""

from .core import (
    IdOrigin,
    Item,
    LookupResult,
    LookupStatus,
    Taxon,
    TaxonDescriptor,
)

__all__ = [
    "IdOrigin",
    "TaxonDescriptor",
    "Taxon",
    "Item",
    "LookupStatus",
    "LookupResult",
]
