"""Identifier resolver strategies.

A resolver answers three batched questions about a taxonomic database: which
identifier a name refers to, what the root-first lineage of an identifier is,
and which taxon an item (e.g. a sequence accession) belongs to. Every answer is
an explicit :class:`~taxatree.entities.core.LookupResult` per key.
"""

from __future__ import annotations

import json
from collections import defaultdict
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Protocol, Sequence, runtime_checkable

from pydantic import BaseModel, Field, ValidationError, field_validator

from taxatree.config.policies import ResolutionPolicy
from taxatree.entities.core import LookupResult, TaxonDescriptor
from taxatree.exceptions import ConfigurationError, CycleError
from taxatree.utils.helpers import normalize_whitespace
from taxatree.utils.logging import get_logger

_LOGGER = get_logger(module=__name__)


@runtime_checkable
class IdResolver(Protocol):
    """Capability interface consulted by the classification pipeline."""

    database: str

    def resolve_by_name(self, names: Sequence[str]) -> Dict[str, LookupResult[str]]:
        ...

    def resolve_lineage(
        self, taxon_ids: Sequence[str]
    ) -> Dict[str, LookupResult[List[TaxonDescriptor]]]:
        ...

    def resolve_id_from_item_id(self, item_ids: Sequence[str]) -> Dict[str, LookupResult[str]]:
        ...


class NullResolver:
    """Resolver for the ``none`` database: nothing is ever found."""

    database = "none"

    def resolve_by_name(self, names: Sequence[str]) -> Dict[str, LookupResult[str]]:
        return {name: LookupResult.not_found() for name in names}

    def resolve_lineage(
        self, taxon_ids: Sequence[str]
    ) -> Dict[str, LookupResult[List[TaxonDescriptor]]]:
        return {taxon_id: LookupResult.not_found() for taxon_id in taxon_ids}

    def resolve_id_from_item_id(self, item_ids: Sequence[str]) -> Dict[str, LookupResult[str]]:
        return {item_id: LookupResult.not_found() for item_id in item_ids}


class ReferenceRecord(BaseModel):
    """One row of a reference taxonomy dump."""

    taxon_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    rank: str | None = None
    parent_id: str | None = None
    synonyms: List[str] = Field(default_factory=list)
    item_ids: List[str] = Field(default_factory=list)

    @field_validator("taxon_id", "parent_id", mode="before")
    @classmethod
    def _coerce_identifier(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        if isinstance(value, str):
            return value.strip() or None
        return value

    @field_validator("item_ids", "synonyms", mode="before")
    @classmethod
    def _coerce_list(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, (str, int)):
            return [str(value)]
        return [str(entry) for entry in value]


def _normalise_name(name: str) -> str:
    return normalize_whitespace(name).casefold()


class ReferenceTableResolver:
    """Offline resolver backed by an in-memory reference taxonomy.

    Names match case-insensitively against scientific names and synonyms; a name
    shared by several taxa is reported as ambiguous.
    """

    def __init__(self, records: Iterable[ReferenceRecord | Mapping[str, Any]], *, database: str) -> None:
        self.database = database
        self._records: Dict[str, ReferenceRecord] = {}
        self._by_name: Dict[str, List[str]] = defaultdict(list)
        self._by_item: Dict[str, str] = {}

        for raw in records:
            record = raw if isinstance(raw, ReferenceRecord) else ReferenceRecord.model_validate(raw)
            if record.taxon_id in self._records:
                raise ConfigurationError(f"duplicate taxon_id '{record.taxon_id}' in reference table")
            self._records[record.taxon_id] = record
            for name in [record.name, *record.synonyms]:
                key = _normalise_name(name)
                if key and record.taxon_id not in self._by_name[key]:
                    self._by_name[key].append(record.taxon_id)
            for item_id in record.item_ids:
                self._by_item[item_id] = record.taxon_id

    @classmethod
    def from_jsonl(cls, path: str | Path, *, database: str) -> "ReferenceTableResolver":
        """Load a reference table with one JSON object per line."""

        source = Path(path)
        if not source.exists():
            raise ConfigurationError(f"reference table not found: {source}")
        records: List[ReferenceRecord] = []
        with source.open("r", encoding="utf-8") as handle:
            for line_number, line in enumerate(handle, start=1):
                if not line.strip():
                    continue
                try:
                    records.append(ReferenceRecord.model_validate(json.loads(line)))
                except (json.JSONDecodeError, ValidationError) as exc:
                    raise ConfigurationError(
                        f"invalid reference record at {source}:{line_number}: {exc}"
                    ) from exc
        _LOGGER.info(
            "Loaded reference taxonomy",
            path=str(source),
            database=database,
            taxa=len(records),
        )
        return cls(records, database=database)

    def __len__(self) -> int:
        return len(self._records)

    def resolve_by_name(self, names: Sequence[str]) -> Dict[str, LookupResult[str]]:
        results: Dict[str, LookupResult[str]] = {}
        for name in names:
            matches = self._by_name.get(_normalise_name(name), [])
            if len(matches) == 1:
                results[name] = LookupResult.found(matches[0])
            elif matches:
                results[name] = LookupResult.ambiguous(matches)
            else:
                results[name] = LookupResult.not_found()
        return results

    def resolve_lineage(
        self, taxon_ids: Sequence[str]
    ) -> Dict[str, LookupResult[List[TaxonDescriptor]]]:
        results: Dict[str, LookupResult[List[TaxonDescriptor]]] = {}
        for taxon_id in taxon_ids:
            record = self._records.get(taxon_id)
            if record is None:
                results[taxon_id] = LookupResult.not_found()
                continue
            results[taxon_id] = LookupResult.found(self._lineage(record))
        return results

    def resolve_id_from_item_id(self, item_ids: Sequence[str]) -> Dict[str, LookupResult[str]]:
        results: Dict[str, LookupResult[str]] = {}
        for item_id in item_ids:
            taxon_id = self._by_item.get(item_id)
            results[item_id] = (
                LookupResult.not_found() if taxon_id is None else LookupResult.found(taxon_id)
            )
        return results

    def _lineage(self, record: ReferenceRecord) -> List[TaxonDescriptor]:
        chain: List[TaxonDescriptor] = []
        current: ReferenceRecord | None = record
        while current is not None:
            if len(chain) > len(self._records):
                raise CycleError(f"reference lineage of '{record.taxon_id}' does not reach a root")
            chain.append(
                TaxonDescriptor(taxon_id=current.taxon_id, name=current.name, rank=current.rank)
            )
            current = self._records.get(current.parent_id) if current.parent_id else None
        chain.reverse()
        return chain


def build_resolver(policy: ResolutionPolicy) -> IdResolver:
    """Instantiate the resolver selected by ``policy``.

    Raises:
        ConfigurationError: If a database other than ``none`` is selected without
            a reference table to back it.
    """

    if policy.offline:
        return NullResolver()
    if policy.reference_table is None:
        raise ConfigurationError(
            f"database '{policy.database}' needs a reference_table or an explicit resolver instance"
        )
    return ReferenceTableResolver.from_jsonl(policy.reference_table, database=policy.database)


__all__ = [
    "IdResolver",
    "NullResolver",
    "ReferenceRecord",
    "ReferenceTableResolver",
    "build_resolver",
]
