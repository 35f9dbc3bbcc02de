"""Arena representation of the taxon forest."""

from __future__ import annotations

from collections import deque
from typing import Dict, Iterator, List, Tuple, Union

from taxatree.entities.core import Taxon
from taxatree.exceptions import CycleError

TaxonKey = Union[str, int]


class TaxonTree:
    """Flat table of taxa with parent references by slot index.

    Slots are assigned in creation order and never reused, so a slot doubles as
    a stable positional index into the taxon table. Only
    :class:`~taxatree.pipeline.hierarchy.registry.TaxonRegistry` inserts taxa.
    """

    def __init__(self) -> None:
        self._taxa: List[Taxon] = []
        self._children: List[List[int]] = []
        self._roots: List[int] = []
        self._by_id: Dict[str, int] = {}
        self._child_by_id: Dict[Tuple[int | None, str], int] = {}
        self._child_by_name: Dict[Tuple[int | None, str | None, str | None], int] = {}

    # ------------------------------------------------------------------
    # Introspection helpers
    # ------------------------------------------------------------------
    def __len__(self) -> int:
        return len(self._taxa)

    def __contains__(self, key: object) -> bool:
        if isinstance(key, (str, int)):
            return self.index_of(key) is not None
        return False

    def __iter__(self) -> Iterator[Taxon]:
        return iter(list(self._taxa))

    def taxa(self) -> List[Taxon]:
        return list(self._taxa)

    def get(self, index: int) -> Taxon:
        return self._taxa[index]

    def by_id(self, taxon_id: str) -> Taxon | None:
        index = self._by_id.get(taxon_id)
        return None if index is None else self._taxa[index]

    def index_of(self, key: TaxonKey) -> int | None:
        """Resolve a taxon identifier (``str``) or slot (``int``) to a slot."""

        if isinstance(key, bool):
            return None
        if isinstance(key, int):
            return key if 0 <= key < len(self._taxa) else None
        return self._by_id.get(key)

    def key_of(self, index: int) -> TaxonKey:
        """Identifier of the taxon at ``index``, or the slot when it has none."""

        taxon_id = self._taxa[index].taxon_id
        return index if taxon_id is None else taxon_id

    def parent_of(self, index: int) -> int | None:
        return self._taxa[index].parent_index

    def children_of(self, index: int | None) -> List[int]:
        """Children in creation order; ``None`` lists the roots."""

        if index is None:
            return list(self._roots)
        return list(self._children[index])

    def root_indexes(self) -> List[int]:
        return list(self._roots)

    def child_with_id(self, parent: int | None, taxon_id: str) -> int | None:
        return self._child_by_id.get((parent, taxon_id))

    def child_with_name(self, parent: int | None, name: str | None, rank: str | None) -> int | None:
        return self._child_by_name.get((parent, name, rank))

    def lineage(self, index: int) -> List[int]:
        """Root-first chain of slots ending at ``index``."""

        chain = [index]
        parent = self._taxa[index].parent_index
        while parent is not None:
            if len(chain) > len(self._taxa):
                raise CycleError(f"parent chain of slot {index} does not reach a root")
            chain.append(parent)
            parent = self._taxa[parent].parent_index
        chain.reverse()
        return chain

    def find(self, name: str, rank: str | None = None) -> List[int]:
        """Slots of every taxon named ``name`` (optionally of ``rank``)."""

        return [
            taxon.index
            for taxon in self._taxa
            if taxon.name == name and (rank is None or taxon.rank == rank)
        ]

    # ------------------------------------------------------------------
    # Mutation (registry only)
    # ------------------------------------------------------------------
    def _insert(self, taxon: Taxon) -> int:
        if taxon.index != len(self._taxa):
            raise ValueError(
                f"taxon slot {taxon.index} does not match the next free slot {len(self._taxa)}"
            )
        parent = taxon.parent_index
        if parent is not None and not 0 <= parent < len(self._taxa):
            raise ValueError(f"taxon slot {taxon.index} references missing parent slot {parent}")
        if taxon.taxon_id is not None and taxon.taxon_id in self._by_id:
            raise ValueError(f"taxon identifier '{taxon.taxon_id}' already exists in the tree")

        self._taxa.append(taxon)
        self._children.append([])
        if parent is None:
            self._roots.append(taxon.index)
        else:
            self._children[parent].append(taxon.index)
        if taxon.taxon_id is not None:
            self._by_id[taxon.taxon_id] = taxon.index
            self._child_by_id[(parent, taxon.taxon_id)] = taxon.index
        if not taxon.anchored:
            self._child_by_name[(parent, taxon.name, taxon.rank)] = taxon.index
        return taxon.index

    def _rekey_name(self, index: int, old_name: str | None, old_rank: str | None) -> None:
        """Refresh the sibling name key after ``name``/``rank`` were filled in."""

        taxon = self._taxa[index]
        if taxon.anchored:
            return
        parent = taxon.parent_index
        if self._child_by_name.get((parent, old_name, old_rank)) == index:
            del self._child_by_name[(parent, old_name, old_rank)]
        self._child_by_name.setdefault((parent, taxon.name, taxon.rank), index)

    # ------------------------------------------------------------------
    # Analytics & validation helpers
    # ------------------------------------------------------------------
    def check_acyclicity(self) -> List[int]:
        """Return a topological ordering of slots or raise when cycles exist."""

        in_degree = [0 if taxon.parent_index is None else 1 for taxon in self._taxa]
        queue = deque(index for index, degree in enumerate(in_degree) if degree == 0)
        visited: List[int] = []

        while queue:
            node = queue.popleft()
            visited.append(node)
            for child in self._children[node]:
                in_degree[child] -= 1
                if in_degree[child] == 0:
                    queue.append(child)

        if len(visited) != len(self._taxa):
            raise CycleError("taxon tree contains a cycle")
        return visited

    def statistics(self) -> Dict[str, object]:
        """Return structural statistics for reports."""

        out_degrees = [len(children) for children in self._children]
        depth: Dict[int, int] = {}
        for index in range(len(self._taxa)):
            parent = self._taxa[index].parent_index
            depth[index] = 0 if parent is None else depth.get(parent, 0) + 1
        origins: Dict[str, int] = {}
        for taxon in self._taxa:
            origins[taxon.id_origin.value] = origins.get(taxon.id_origin.value, 0) + 1
        return {
            "node_count": len(self._taxa),
            "edge_count": sum(out_degrees),
            "root_count": len(self._roots),
            "max_out_degree": max(out_degrees, default=0),
            "max_depth": max(depth.values(), default=0),
            "id_origins": dict(sorted(origins.items())),
        }


__all__ = ["TaxonTree", "TaxonKey"]
