"""Public entry point turning labelled records into a taxon tree and item table."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Tuple

import polars as pl

from taxatree.config.policies import MergePolicy, Policies, load_policies
from taxatree.config.settings import Settings, get_settings
from taxatree.config.validation import LineageSource, validate_configuration
from taxatree.entities.core import Item, Taxon, TaxonDescriptor
from taxatree.exceptions import ConfigurationError, ParseError, TaxonLookupError
from taxatree.observability.diagnostics import DiagnosticsCollector, DiagnosticsSnapshot
from taxatree.utils.logging import get_logger, logging_context

from .binding import BoundTable, ItemBinder, UnboundRecord
from .extraction import InputRecords, LineageParser, ParsedRecord, RecordExtractor, labeled_texts
from .hierarchy import TaxonRegistry, TaxonTree, TraversalResult, TreeValidator, ValidationReport
from .hierarchy import roots as _roots
from .hierarchy import subtaxa as _subtaxa
from .hierarchy import supertaxa as _supertaxa
from .io import classified_to_frames
from .resolution import BatchLookup, IdResolver, build_resolver

_LOGGER = get_logger(module=__name__)


@dataclass(slots=True)
class Classified:
    """Taxon tree, bound items and everything reported while building them."""

    tree: TaxonTree
    items: List[Item]
    taxon_info: Dict[int, Dict[str, Any]]
    unbound: List[UnboundRecord]
    diagnostics: DiagnosticsSnapshot
    validation: ValidationReport
    source: LineageSource
    item_columns: List[str] = field(default_factory=list)
    taxon_info_columns: List[str] = field(default_factory=list)

    @property
    def taxa(self) -> List[Taxon]:
        return self.tree.taxa()

    def roots(self, *, index_mode: bool = False) -> set:
        return _roots(self.tree, index_mode=index_mode)

    def supertaxa(self, subset=None, **options: Any) -> TraversalResult:
        return _supertaxa(self.tree, subset, **options)

    def subtaxa(self, subset=None, **options: Any) -> TraversalResult:
        return _subtaxa(self.tree, subset, **options)

    def to_frames(self) -> Tuple[pl.DataFrame, pl.DataFrame]:
        """Return ``(taxon_frame, item_frame)`` as polars DataFrames."""

        return classified_to_frames(self)


class TaxonomyExtractor:
    """Coordinate capture, lineage inference, merging and item binding."""

    def __init__(
        self,
        policies: Policies,
        *,
        resolver: IdResolver | None = None,
    ) -> None:
        self._policies = policies
        self._source = validate_configuration(policies)
        if resolver is not None and policies.resolution.offline:
            raise ConfigurationError("a resolver was supplied but the configured database is 'none'")
        self._resolver = resolver if resolver is not None else build_resolver(policies.resolution)
        self._online = not policies.resolution.offline
        self._diagnostics = DiagnosticsCollector()
        self._extractor = RecordExtractor(policies.extraction)
        self._parser = LineageParser.from_policy(policies.extraction)

    @property
    def source(self) -> LineageSource:
        return self._source

    @property
    def diagnostics(self) -> DiagnosticsCollector:
        return self._diagnostics

    # ------------------------------------------------------------------
    # Primary entry point
    # ------------------------------------------------------------------
    def run(self, records: InputRecords | Iterable[Any]) -> Classified:
        labeled = labeled_texts(records)
        parsed = self._extractor.extract_many(labeled)
        for record in parsed:
            if not record.ok:
                self._record_failure(record, phase="capture")

        self._infer_lineages(parsed)

        registry = TaxonRegistry(self._policies.merge, diagnostics=self._diagnostics)
        leaves: Dict[int, int] = {}
        for record in parsed:
            if record.ok:
                leaves[record.position] = registry.merge(record.lineage, record=record.position).leaf

        if self._source is LineageSource.CLASS_ID and self._online:
            self._fill_names(registry)

        bound: BoundTable = ItemBinder(self._policies.extraction).bind(parsed, leaves, registry.tree)
        validation = TreeValidator().run(registry.tree)
        snapshot = self._diagnostics.report(phase="extract_taxonomy")

        _LOGGER.info(
            "Taxonomy extraction completed",
            source=self._source.value,
            records=len(parsed),
            taxa=len(registry.tree),
            items=len(bound.items),
            unbound=len(bound.unbound),
        )
        return Classified(
            tree=registry.tree,
            items=bound.items,
            taxon_info=bound.taxon_info,
            unbound=bound.unbound,
            diagnostics=snapshot,
            validation=validation,
            source=self._source,
            item_columns=bound.item_columns,
            taxon_info_columns=bound.taxon_info_columns,
        )

    # ------------------------------------------------------------------
    # Lineage inference
    # ------------------------------------------------------------------
    def _infer_lineages(self, records: List[ParsedRecord]) -> None:
        active = [record for record in records if record.ok]
        if self._source is LineageSource.CLASS_ID:
            self._parse_embedded(active, "class_id", id_field=True)
        elif self._source is LineageSource.CLASS_NAME:
            self._parse_embedded(active, "class_name", id_field=False)
            if self._online:
                self._identify_names(active)
        elif self._source is LineageSource.TAXON_ID:
            self._lookup_lineages(active, {r.position: r.role("taxon_id") for r in active})
        elif self._source is LineageSource.ITEM_ID:
            taxon_ids = self._lookup_ids(active, "resolve_id_from_item_id", "item_id")
            self._lookup_lineages(active, taxon_ids)
        else:
            taxon_ids = self._lookup_ids(active, "resolve_by_name", "taxon_name")
            self._lookup_lineages(active, taxon_ids)

    def _parse_embedded(self, records: List[ParsedRecord], role: str, *, id_field: bool) -> None:
        extraction = self._policies.extraction
        for record in records:
            try:
                lineage = self._parser.parse(record.role(role), id_field=id_field)
            except ParseError as exc:
                if extraction.strict:
                    raise
                record.fail(ParseError(str(exc), record=record.position))
                self._record_failure(record, phase="parse")
                continue
            if not extraction.taxon_in_lineage:
                own = self._own_taxon(record)
                if own is None:
                    record.fail(ParseError("record carries no taxon of its own", record=record.position))
                    self._record_failure(record, phase="parse")
                    continue
                lineage.append(own)
            record.lineage = lineage

    @staticmethod
    def _own_taxon(record: ParsedRecord) -> TaxonDescriptor | None:
        name = record.role("taxon_name") or None
        taxon_id = record.role("taxon_id") or None
        if name is None and taxon_id is None:
            return None
        return TaxonDescriptor(name=name, taxon_id=taxon_id)

    def _identify_names(self, records: List[ParsedRecord]) -> None:
        lookup = self._batch("resolve_by_name")
        names = [
            descriptor.name
            for record in records
            for descriptor in record.lineage
            if descriptor.taxon_id is None and descriptor.name is not None
        ]
        results = lookup.run(names)
        for record in records:
            record.lineage = [
                descriptor.with_id(results[descriptor.name].value)
                if descriptor.taxon_id is None and descriptor.name is not None and results[descriptor.name].ok
                else descriptor
                for descriptor in record.lineage
            ]

    def _lookup_ids(self, records: List[ParsedRecord], operation: str, role: str) -> Dict[int, str | None]:
        lookup = self._batch(operation)
        keys = [record.role(role) or None for record in records]
        taxon_ids: Dict[int, str | None] = {}
        for record, key, result in zip(records, keys, lookup.broadcast(keys)):
            if result is not None and result.ok:
                taxon_ids[record.position] = result.value
                continue
            taxon_ids[record.position] = None
            record.fail(TaxonLookupError(f"could not identify '{key}' by {role}", key=key))
            if result is None:
                self._record_failure(record, phase=operation)
        return taxon_ids

    def _lookup_lineages(self, records: List[ParsedRecord], taxon_ids: Mapping[int, str | None]) -> None:
        pending = [record for record in records if record.ok]
        keys = [taxon_ids.get(record.position) or None for record in pending]
        lookup = self._batch("resolve_lineage")
        for record, key, result in zip(pending, keys, lookup.broadcast(keys)):
            if result is not None and result.ok and result.value:
                record.lineage = list(result.value)
                continue
            record.fail(TaxonLookupError(f"no lineage found for taxon '{key}'", key=key))
            if result is None or result.ok:
                self._record_failure(record, phase="resolve_lineage")

    def _fill_names(self, registry: TaxonRegistry) -> None:
        unnamed = [
            taxon.taxon_id
            for taxon in registry.tree.taxa()
            if taxon.anchored and (taxon.name is None or taxon.rank is None)
        ]
        if not unnamed:
            return
        lookup = self._batch("resolve_lineage", merge_policy=MergePolicy(arbitrary_ids="allow"))
        for taxon_id, result in lookup.run(unnamed).items():
            if result.ok and result.value:
                own = result.value[-1]
                registry.annotate(taxon_id, name=own.name, rank=own.rank)

    def _batch(self, operation: str, *, merge_policy: MergePolicy | None = None) -> BatchLookup:
        return BatchLookup.for_resolver(
            self._resolver,
            operation,
            policy=self._policies.resolution,
            merge_policy=merge_policy or self._policies.merge,
            diagnostics=self._diagnostics,
        )

    def _record_failure(self, record: ParsedRecord, *, phase: str) -> None:
        error = record.error
        self._diagnostics.record(
            phase=phase,
            kind=type(error).__name__ if error is not None else "unknown",
            message=str(error),
            record=record.position,
        )


def _coerce_policies(
    policies: Policies | Mapping[str, Any] | os.PathLike[str] | str | None,
    settings: Settings | None,
) -> Policies:
    if policies is None:
        return (settings or get_settings()).policies
    if isinstance(policies, Policies):
        return policies
    return load_policies(policies)


def extract_taxonomy(
    records: InputRecords | Iterable[Any],
    policies: Policies | Mapping[str, Any] | os.PathLike[str] | str | None = None,
    *,
    settings: Settings | None = None,
    resolver: IdResolver | None = None,
) -> Classified:
    """Build a taxon tree from ``records`` and bind every record to its leaf.

    ``policies`` may be a :class:`Policies` instance, a mapping or a YAML path;
    when omitted the active settings supply them. Configuration is validated
    before any record is read.

    Raises:
        ConfigurationError: If the policies cannot produce lineages.
        TaxonLookupError: Under the ``error`` arbitrary-ID policy, when a taxon
            cannot be identified.
        ConsistencyError: If items of one taxon disagree on a taxon-scoped column.
    """

    active = _coerce_policies(policies, settings)
    with logging_context(step="extract-taxonomy"):
        return TaxonomyExtractor(active, resolver=resolver).run(records)


__all__ = ["Classified", "TaxonomyExtractor", "extract_taxonomy"]
