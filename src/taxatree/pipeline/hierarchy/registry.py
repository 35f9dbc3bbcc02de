"""Merge lineages into a single deduplicated taxon tree."""

from __future__ import annotations

from dataclasses import dataclass, field
from threading import RLock
from typing import Iterable, List, Sequence, Union

from taxatree.config.policies import ARBITRARY_ID_POLICIES, MergePolicy
from taxatree.entities.core import IdOrigin, Taxon, TaxonDescriptor
from taxatree.exceptions import ConfigurationError, CycleError, TaxaTreeError, TaxonLookupError
from taxatree.observability.diagnostics import Diagnostic, DiagnosticsCollector
from taxatree.utils.logging import get_logger

from .tree import TaxonKey, TaxonTree

_LOGGER = get_logger(module=__name__)

LineageElement = Union[TaxonDescriptor, str]


@dataclass(slots=True)
class MergeResult:
    """Outcome of merging one lineage."""

    path: List[int]
    taxon_ids: List[str | None]
    created: List[int] = field(default_factory=list)
    diagnostics: List[Diagnostic] = field(default_factory=list)

    @property
    def leaf(self) -> int:
        return self.path[-1]

    @property
    def leaf_id(self) -> str | None:
        return self.taxon_ids[-1]


class TaxonRegistry:
    """Sole writer of a :class:`TaxonTree`.

    Descriptors are matched root to leaf against the children of the current
    parent. A descriptor with a canonical identifier only matches a child with
    the same identifier; one without only matches a non-anchored child with the
    same ``(name, rank)``. Anything unmatched becomes a new taxon whose
    identifier follows ``policy.arbitrary_ids``.
    """

    def __init__(
        self,
        policy: MergePolicy | None = None,
        *,
        diagnostics: DiagnosticsCollector | None = None,
    ) -> None:
        self._policy = policy or MergePolicy()
        if self._policy.arbitrary_ids not in ARBITRARY_ID_POLICIES:
            raise ConfigurationError(
                f"unsupported arbitrary_ids policy '{self._policy.arbitrary_ids}'"
            )
        self._diagnostics = diagnostics or DiagnosticsCollector()
        self._tree = TaxonTree()
        self._lock = RLock()
        self._next_synthetic = 1

    @property
    def tree(self) -> TaxonTree:
        return self._tree

    @property
    def policy(self) -> MergePolicy:
        return self._policy

    @property
    def diagnostics(self) -> DiagnosticsCollector:
        return self._diagnostics

    def __len__(self) -> int:
        return len(self._tree)

    # ------------------------------------------------------------------
    # Merging
    # ------------------------------------------------------------------
    def merge(
        self,
        lineage: Sequence[LineageElement] | Iterable[LineageElement],
        *,
        record: int | None = None,
    ) -> MergeResult:
        """Merge a root-first lineage and return the slots it resolves to.

        Plain strings are taken to be canonical identifiers. Nothing is
        inserted when the merge fails.

        Raises:
            TaxonLookupError: Under the ``error`` policy, when a new taxon has no
                canonical identifier or its identifier already sits under
                another parent.
            TaxaTreeError: If the tree would grow beyond ``max_tree_size``.
        """

        descriptors = [self._coerce(element) for element in lineage]
        if not descriptors:
            raise TaxaTreeError("cannot merge an empty lineage")

        with self._lock:
            diagnostics: List[Diagnostic] = []
            path: List[int] = []
            parent: int | None = None
            remaining = list(descriptors)

            while remaining:
                descriptor = self._reconcile(
                    remaining[0], parent, record=record, diagnostics=diagnostics
                )
                index = self._match(parent, descriptor)
                if index is None:
                    remaining[0] = descriptor
                    break
                remaining.pop(0)
                self._fill(index, name=descriptor.name, rank=descriptor.rank)
                path.append(index)
                parent = index

            plan = self._plan(remaining, record=record, diagnostics=diagnostics)
            if len(self._tree) + len(plan) > self._policy.max_tree_size:
                raise TaxaTreeError(
                    f"taxon tree would exceed max_tree_size={self._policy.max_tree_size}"
                )

            created: List[int] = []
            for descriptor in plan:
                parent = self._create(parent, descriptor, record=record, diagnostics=diagnostics)
                created.append(parent)
                path.append(parent)

            if created:
                _LOGGER.debug(
                    "Merged lineage",
                    record=record,
                    depth=len(path),
                    created=len(created),
                    tree_size=len(self._tree),
                )
            return MergeResult(
                path=path,
                taxon_ids=[self._tree.get(index).taxon_id for index in path],
                created=created,
                diagnostics=diagnostics,
            )

    def annotate(
        self,
        key: TaxonKey,
        *,
        name: str | None = None,
        rank: str | None = None,
    ) -> bool:
        """Fill in a taxon's unknown name/rank; known values are kept."""

        with self._lock:
            index = self._tree.index_of(key)
            if index is None:
                raise TaxonLookupError(f"unknown taxon '{key}'", key=key)
            return self._fill(index, name=name, rank=rank)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _coerce(element: LineageElement) -> TaxonDescriptor:
        if isinstance(element, TaxonDescriptor):
            return element
        if isinstance(element, str):
            return TaxonDescriptor(taxon_id=element)
        raise TypeError(f"lineage elements must be descriptors or identifiers, got {type(element).__name__}")

    def _match(self, parent: int | None, descriptor: TaxonDescriptor) -> int | None:
        if descriptor.taxon_id is not None:
            return self._tree.child_with_id(parent, descriptor.taxon_id)
        return self._tree.child_with_name(parent, descriptor.name, descriptor.rank)

    def _reconcile(
        self,
        descriptor: TaxonDescriptor,
        parent: int | None,
        *,
        record: int | None,
        diagnostics: List[Diagnostic],
        planned: set[str] | None = None,
        new_parent: bool = False,
    ) -> TaxonDescriptor:
        """Demote an identifier that already belongs to a taxon under another parent."""

        taxon_id = descriptor.taxon_id
        if taxon_id is None:
            return descriptor
        existing = self._tree.index_of(taxon_id)
        if existing is None and (planned is None or taxon_id not in planned):
            return descriptor
        if existing is not None and not new_parent and self._tree.parent_of(existing) == parent:
            return descriptor

        message = f"taxon identifier '{taxon_id}' already exists under a different parent"
        if self._policy.arbitrary_ids == "error":
            raise TaxonLookupError(message, key=taxon_id)
        diagnostics.append(
            self._diagnostics.record(
                phase="merge", kind="id_conflict", message=message, record=record, key=taxon_id
            )
        )
        _LOGGER.warning("Identifier conflict; treating taxon as unidentified", taxon_id=taxon_id, record=record)
        return TaxonDescriptor(name=descriptor.name or taxon_id, rank=descriptor.rank)

    def _plan(
        self,
        remaining: List[TaxonDescriptor],
        *,
        record: int | None,
        diagnostics: List[Diagnostic],
    ) -> List[TaxonDescriptor]:
        plan: List[TaxonDescriptor] = []
        planned: set[str] = set()
        for position, descriptor in enumerate(remaining):
            if position:
                descriptor = self._reconcile(
                    descriptor,
                    None,
                    record=record,
                    diagnostics=diagnostics,
                    planned=planned,
                    new_parent=True,
                )
            if descriptor.taxon_id is not None:
                planned.add(descriptor.taxon_id)
            elif self._policy.arbitrary_ids == "error":
                raise TaxonLookupError(
                    f"no canonical identifier for taxon '{descriptor.label()}'",
                    key=descriptor.label(),
                )
            plan.append(descriptor)
        return plan

    def _create(
        self,
        parent: int | None,
        descriptor: TaxonDescriptor,
        *,
        record: int | None,
        diagnostics: List[Diagnostic],
    ) -> int:
        policy = self._policy.arbitrary_ids
        if descriptor.taxon_id is not None:
            taxon_id: str | None = descriptor.taxon_id
            origin = IdOrigin.RESOLVED
        elif policy in ("allow", "warn"):
            taxon_id = self._synthesize_id()
            origin = IdOrigin.SYNTHETIC
            if policy == "warn":
                message = f"assigned arbitrary identifier '{taxon_id}' to taxon '{descriptor.label()}'"
                diagnostics.append(
                    self._diagnostics.record(
                        phase="merge",
                        kind="arbitrary_id",
                        message=message,
                        record=record,
                        key=descriptor.label(),
                    )
                )
                _LOGGER.warning(
                    "Assigned arbitrary taxon identifier",
                    taxon=descriptor.label(),
                    taxon_id=taxon_id,
                )
        else:
            taxon_id = None
            origin = IdOrigin.UNRESOLVED

        taxon = Taxon(
            index=len(self._tree),
            taxon_id=taxon_id,
            name=descriptor.name,
            rank=descriptor.rank,
            parent_index=parent,
            parent_id=None if parent is None else self._tree.get(parent).taxon_id,
            id_origin=origin,
        )
        index = self._tree._insert(taxon)
        if self._policy.verify_acyclicity:
            self._verify_chain(index)
        return index

    def _synthesize_id(self) -> str:
        prefix = self._policy.synthetic_id_prefix
        while True:
            candidate = f"{prefix}{self._next_synthetic}"
            self._next_synthetic += 1
            if candidate not in self._tree:
                return candidate

    def _verify_chain(self, index: int) -> None:
        steps = 0
        parent = self._tree.parent_of(index)
        while parent is not None:
            steps += 1
            if steps > len(self._tree):
                raise CycleError(f"parent chain of slot {index} does not terminate at a root")
            parent = self._tree.parent_of(parent)

    def _fill(self, index: int, *, name: str | None, rank: str | None) -> bool:
        taxon = self._tree.get(index)
        old_name, old_rank = taxon.name, taxon.rank
        changed = taxon.fill(name=name, rank=rank)
        if changed:
            self._tree._rekey_name(index, old_name, old_rank)
        return changed


__all__ = ["TaxonRegistry", "MergeResult", "LineageElement"]
