"""Read-only queries over a :class:`TaxonTree`.

Taxa are addressed by identifier (``str``) or slot index (``int``). Results
report identifiers unless ``index_mode`` is set; taxa without an identifier are
reported by slot in either mode.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Set

from taxatree.exceptions import CycleError

from .tree import TaxonKey, TaxonTree

TaxonRef = TaxonKey


@dataclass(slots=True)
class TraversalResult:
    """Per-query results plus the query keys that matched no taxon."""

    per_taxon: Dict[TaxonKey, List[TaxonRef]] = field(default_factory=dict)
    misses: List[TaxonKey] = field(default_factory=list)
    merged: Set[TaxonRef] | None = None

    def __getitem__(self, key: TaxonKey) -> List[TaxonRef]:
        return self.per_taxon[key]

    def __contains__(self, key: object) -> bool:
        return key in self.per_taxon

    def __iter__(self) -> Iterator[TaxonKey]:
        return iter(self.per_taxon)

    def __len__(self) -> int:
        return len(self.per_taxon)


def _emit(tree: TaxonTree, index: int, index_mode: bool) -> TaxonRef:
    return index if index_mode else tree.key_of(index)


def _queries(
    tree: TaxonTree,
    subset: Iterable[TaxonKey] | None,
    result: TraversalResult,
) -> List[tuple[TaxonKey, int]]:
    if subset is None:
        return [(tree.key_of(index), index) for index in range(len(tree))]
    if isinstance(subset, (str, int)):
        subset = [subset]

    resolved: List[tuple[TaxonKey, int]] = []
    for key in subset:
        index = tree.index_of(key)
        if index is None:
            result.misses.append(key)
        else:
            resolved.append((key, index))
    return resolved


def roots(tree: TaxonTree, *, index_mode: bool = False) -> Set[TaxonRef]:
    """Every taxon without a parent."""

    return {_emit(tree, index, index_mode) for index in tree.root_indexes()}


def supertaxa(
    tree: TaxonTree,
    subset: Iterable[TaxonKey] | None = None,
    *,
    recursive: bool = True,
    include_input: bool = False,
    index_mode: bool = False,
) -> TraversalResult:
    """Ancestors of each queried taxon, nearest first.

    With ``recursive`` the chain runs up to and including the root; otherwise
    only the immediate parent is returned. Roots have no supertaxa.
    """

    result = TraversalResult()
    limit = len(tree)
    for key, index in _queries(tree, subset, result):
        chain: List[TaxonRef] = []
        if include_input:
            chain.append(_emit(tree, index, index_mode))
        parent = tree.parent_of(index)
        steps = 0
        while parent is not None:
            steps += 1
            if steps > limit:
                raise CycleError(f"parent chain of slot {index} does not reach a root")
            chain.append(_emit(tree, parent, index_mode))
            if not recursive:
                break
            parent = tree.parent_of(parent)
        result.per_taxon[key] = chain
    return result


def subtaxa(
    tree: TaxonTree,
    subset: Iterable[TaxonKey] | None = None,
    *,
    recursive: bool = True,
    simplify: bool = False,
    include_input: bool = False,
    index_mode: bool = False,
) -> TraversalResult:
    """Descendants of each queried taxon.

    Results are breadth-first: ordered by depth, then by the order taxa were
    added to the tree. ``simplify`` additionally flattens every result into
    :attr:`TraversalResult.merged`.
    """

    result = TraversalResult()
    for key, index in _queries(tree, subset, result):
        found: List[TaxonRef] = []
        if include_input:
            found.append(_emit(tree, index, index_mode))
        queue = deque(tree.children_of(index))
        while queue:
            child = queue.popleft()
            found.append(_emit(tree, child, index_mode))
            if recursive:
                queue.extend(tree.children_of(child))
        result.per_taxon[key] = found

    if simplify:
        result.merged = {value for values in result.per_taxon.values() for value in values}
    return result


__all__ = ["TraversalResult", "TaxonRef", "roots", "supertaxa", "subtaxa"]
