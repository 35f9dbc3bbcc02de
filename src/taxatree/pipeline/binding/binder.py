"""Attach input items to the leaf taxa of their lineages."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Sequence

from taxatree.config.policies import ITEM_SCOPED_ROLES, TAXON_SCOPED_ROLES, ExtractionPolicy
from taxatree.entities.core import Item
from taxatree.exceptions import ConsistencyError
from taxatree.pipeline.extraction.capture import ParsedRecord
from taxatree.pipeline.extraction.inputs import SEQUENCE_COLUMN
from taxatree.pipeline.hierarchy.tree import TaxonTree
from taxatree.utils.logging import get_logger

_LOGGER = get_logger(module=__name__)


@dataclass(frozen=True, slots=True)
class UnboundRecord:
    """An input record that produced no item."""

    position: int
    item_id: str
    text: str
    reason: str


@dataclass(slots=True)
class BoundTable:
    """Items bound to taxa plus the taxon-scoped metadata they carried."""

    items: List[Item] = field(default_factory=list)
    taxon_info: Dict[int, Dict[str, Any]] = field(default_factory=dict)
    unbound: List[UnboundRecord] = field(default_factory=list)
    item_columns: List[str] = field(default_factory=list)
    taxon_info_columns: List[str] = field(default_factory=list)


def _present(value: Any) -> bool:
    return value is not None and value != ""


class ItemBinder:
    """Bind parsed records to leaf slots without touching the tree."""

    def __init__(self, policy: ExtractionPolicy) -> None:
        self._policy = policy
        self._item_columns = policy.columns_for(ITEM_SCOPED_ROLES)
        self._taxon_columns = policy.columns_for(TAXON_SCOPED_ROLES)

    def bind(
        self,
        records: Sequence[ParsedRecord],
        leaves: Mapping[int, int],
        tree: TaxonTree,
    ) -> BoundTable:
        """Create one item per record that reached a leaf.

        ``leaves`` maps record positions to leaf slots. Items without a captured
        ``item_id`` are numbered by 1-based input position.

        Raises:
            ConsistencyError: If two items of one taxon disagree on a
                taxon-scoped column.
        """

        with_sequences = any(record.sequence is not None for record in records)
        item_columns = list(self._item_columns)
        if with_sequences and SEQUENCE_COLUMN not in item_columns:
            item_columns.append(SEQUENCE_COLUMN)
        table = BoundTable(item_columns=item_columns, taxon_info_columns=list(self._taxon_columns))

        for record in records:
            item_id = record.role("item_id") or str(record.position + 1)
            leaf = leaves.get(record.position)
            if not record.ok or leaf is None:
                reason = str(record.error) if record.error is not None else "no lineage was resolved"
                table.unbound.append(
                    UnboundRecord(position=record.position, item_id=item_id, text=record.text, reason=reason)
                )
                continue

            attributes = {column: record.captures.get(column) for column in self._item_columns}
            if with_sequences:
                attributes[SEQUENCE_COLUMN] = record.sequence
            table.items.append(
                Item(
                    item_id=item_id,
                    taxon_index=leaf,
                    taxon_id=tree.get(leaf).taxon_id,
                    attributes=attributes,
                )
            )
            self._merge_taxon_info(table.taxon_info, record, leaf, tree)

        _LOGGER.debug(
            "Bound items to taxa",
            items=len(table.items),
            unbound=len(table.unbound),
            annotated_taxa=len(table.taxon_info),
        )
        return table

    def _merge_taxon_info(
        self,
        taxon_info: Dict[int, Dict[str, Any]],
        record: ParsedRecord,
        leaf: int,
        tree: TaxonTree,
    ) -> None:
        if not self._taxon_columns:
            return
        values = taxon_info.setdefault(leaf, {})
        for column in self._taxon_columns:
            value = record.captures.get(column)
            if not _present(value):
                continue
            known = values.get(column)
            if known is None:
                values[column] = value
            elif known != value:
                taxon = tree.key_of(leaf)
                raise ConsistencyError(
                    f"taxon '{tree.get(leaf).label()}' has conflicting values for '{column}': "
                    f"'{known}' and '{value}'",
                    column=column,
                    taxon=taxon,
                )


__all__ = ["ItemBinder", "BoundTable", "UnboundRecord"]
