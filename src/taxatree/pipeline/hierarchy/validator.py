"""Post-build invariant checks for the taxon tree."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Tuple

from taxatree.entities.core import IdOrigin
from taxatree.exceptions import CycleError
from taxatree.utils.logging import get_logger

from .tree import TaxonTree


@dataclass(slots=True)
class ValidationReport:
    """Structured validation output attached to every classification result."""

    passed: bool
    violations: List[dict] = field(default_factory=list)
    tree_stats: dict = field(default_factory=dict)
    proofs: dict = field(default_factory=dict)
    generated_at: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    def to_dict(self) -> dict:
        return {
            "passed": self.passed,
            "violations": list(self.violations),
            "tree_stats": dict(self.tree_stats),
            "proofs": dict(self.proofs),
            "generated_at": self.generated_at,
        }


class InvariantChecker:
    """Structural checks over a finished :class:`TaxonTree`."""

    def prove_acyclicity(self, tree: TaxonTree) -> dict:
        ordering = tree.check_acyclicity()
        return {"valid": True, "ordered": len(ordering)}

    def prove_connectivity(self, tree: TaxonTree) -> dict:
        """Every taxon must be reachable from exactly one root."""

        reached = [False] * len(tree)
        queue = deque(tree.root_indexes())
        while queue:
            index = queue.popleft()
            if reached[index]:
                continue
            reached[index] = True
            queue.extend(tree.children_of(index))
        unreachable = [index for index, seen in enumerate(reached) if not seen]
        return {"valid": not unreachable, "unreachable": unreachable}

    def validate_parent_references(self, tree: TaxonTree) -> List[dict]:
        violations: List[dict] = []
        for taxon in tree.taxa():
            if taxon.parent_index is None:
                if taxon.parent_id is not None:
                    violations.append(
                        {
                            "code": "root-has-parent-id",
                            "index": taxon.index,
                            "detail": f"root declares parent_id '{taxon.parent_id}'",
                        }
                    )
                continue
            expected = tree.get(taxon.parent_index).taxon_id
            if taxon.parent_id != expected:
                violations.append(
                    {
                        "code": "parent-id-mismatch",
                        "index": taxon.index,
                        "detail": f"parent_id '{taxon.parent_id}' does not match parent '{expected}'",
                    }
                )
        return violations

    def validate_sibling_uniqueness(self, tree: TaxonTree) -> List[dict]:
        violations: List[dict] = []
        seen_ids: Dict[str, int] = {}
        seen_names: Dict[Tuple[int | None, str | None, str | None], int] = {}
        for taxon in tree.taxa():
            if taxon.taxon_id is not None:
                if taxon.taxon_id in seen_ids:
                    violations.append(
                        {
                            "code": "duplicate-id",
                            "index": taxon.index,
                            "detail": f"identifier '{taxon.taxon_id}' also used by slot {seen_ids[taxon.taxon_id]}",
                        }
                    )
                seen_ids.setdefault(taxon.taxon_id, taxon.index)
            if taxon.id_origin is IdOrigin.RESOLVED:
                continue
            key = (taxon.parent_index, taxon.name, taxon.rank)
            if key in seen_names:
                violations.append(
                    {
                        "code": "duplicate-sibling",
                        "index": taxon.index,
                        "detail": f"unanchored sibling of slot {seen_names[key]} with the same name and rank",
                    }
                )
            seen_names.setdefault(key, taxon.index)
        return violations


class TreeValidator:
    """Combine structural checks into a :class:`ValidationReport`."""

    def __init__(self, checker: InvariantChecker | None = None) -> None:
        self._checker = checker or InvariantChecker()
        self._logger = get_logger(module=f"{__name__}.TreeValidator")

    def run(self, tree: TaxonTree) -> ValidationReport:
        violations: List[dict] = []
        violations.extend(self._checker.validate_parent_references(tree))
        violations.extend(self._checker.validate_sibling_uniqueness(tree))

        proofs: dict = {}
        try:
            proofs["acyclicity"] = self._checker.prove_acyclicity(tree)
        except CycleError as exc:
            violations.append({"code": "cycle-detected", "detail": str(exc)})
            proofs["acyclicity"] = {"valid": False, "detail": str(exc)}

        connectivity = self._checker.prove_connectivity(tree)
        proofs["connectivity"] = connectivity
        if not connectivity["valid"]:
            violations.append(
                {
                    "code": "unreachable-taxa",
                    "detail": f"{len(connectivity['unreachable'])} taxa are not reachable from a root",
                }
            )

        report = ValidationReport(
            passed=not violations,
            violations=violations,
            tree_stats=tree.statistics(),
            proofs=proofs,
        )
        self._logger.info(
            "Tree validation completed",
            passed=report.passed,
            violations=len(report.violations),
            taxa=len(tree),
        )
        return report


__all__ = ["InvariantChecker", "TreeValidator", "ValidationReport"]
