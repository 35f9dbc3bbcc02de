"""Taxon tree construction, validation and traversal."""

from .registry import LineageElement, MergeResult, TaxonRegistry
from .traversal import TaxonRef, TraversalResult, roots, subtaxa, supertaxa
from .tree import TaxonKey, TaxonTree
from .validator import InvariantChecker, TreeValidator, ValidationReport

__all__ = [
    "TaxonTree",
    "TaxonKey",
    "TaxonRegistry",
    "MergeResult",
    "LineageElement",
    "TraversalResult",
    "TaxonRef",
    "roots",
    "supertaxa",
    "subtaxa",
    "InvariantChecker",
    "TreeValidator",
    "ValidationReport",
]
