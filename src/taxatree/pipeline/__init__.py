"""Lineage extraction pipeline."""

from .main import Classified, TaxonomyExtractor, extract_taxonomy

__all__ = ["Classified", "TaxonomyExtractor", "extract_taxonomy"]
