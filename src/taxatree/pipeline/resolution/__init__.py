"""Identifier resolution strategies and batched lookups."""

from .batching import BatchLookup, LookupCall
from .resolver import (
    IdResolver,
    NullResolver,
    ReferenceRecord,
    ReferenceTableResolver,
    build_resolver,
)

__all__ = [
    "IdResolver",
    "NullResolver",
    "ReferenceRecord",
    "ReferenceTableResolver",
    "build_resolver",
    "BatchLookup",
    "LookupCall",
]
