"""Split delimited classification strings into root-first taxon descriptors."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Sequence

from taxatree.config.policies import ExtractionPolicy
from taxatree.entities.core import TaxonDescriptor
from taxatree.exceptions import ParseError
from taxatree.utils.logging import get_logger

_LOGGER = get_logger(module=__name__)


def _split_segment(
    segment: str,
    rank_separator: str | None,
    reverse_rank_order: bool,
) -> tuple[str, str | None]:
    if not rank_separator or rank_separator not in segment:
        return segment.strip(), None
    if reverse_rank_order:
        name, _, rank = segment.rpartition(rank_separator)
    else:
        rank, _, name = segment.partition(rank_separator)
    return name.strip(), (rank.strip() or None)


def parse_lineage(
    text: str,
    taxon_separator: str = ";",
    rank_separator: str | None = "__",
    reverse_taxon_order: bool = False,
    reverse_rank_order: bool = False,
    *,
    id_field: bool = False,
) -> List[TaxonDescriptor]:
    """Parse one lineage string into descriptors ordered root first.

    Segments with an empty name part (``g__`` placeholders) are dropped. With
    ``id_field`` the name token is taken to be a canonical identifier.

    Raises:
        ParseError: If ``text`` is not a string or yields no usable segment.
    """

    if not isinstance(text, str):
        raise ParseError(f"lineage must be text, got {type(text).__name__}", record=text)
    if not taxon_separator:
        raise ParseError("taxon separator must not be empty", record=text)
    if not text.strip():
        raise ParseError("lineage is empty", record=text)

    descriptors: List[TaxonDescriptor] = []
    for raw_segment in text.split(taxon_separator):
        name, rank = _split_segment(raw_segment, rank_separator, reverse_rank_order)
        if not name:
            continue
        if id_field:
            descriptors.append(TaxonDescriptor(taxon_id=name, rank=rank))
        else:
            descriptors.append(TaxonDescriptor(name=name, rank=rank))

    if not descriptors:
        raise ParseError(f"no taxa could be parsed from lineage '{text}'", record=text)
    if reverse_taxon_order:
        descriptors.reverse()
    return descriptors


@dataclass(slots=True)
class ParseOutcome:
    """Per-record parse result; ``error`` is set instead of raising."""

    position: int
    text: str
    lineage: List[TaxonDescriptor] = field(default_factory=list)
    error: ParseError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class LineageParser:
    """Configured lineage parser applied independently to each record."""

    def __init__(
        self,
        taxon_separator: str = ";",
        rank_separator: str | None = "__",
        *,
        reverse_taxon_order: bool = False,
        reverse_rank_order: bool = False,
    ) -> None:
        self.taxon_separator = taxon_separator
        self.rank_separator = rank_separator
        self.reverse_taxon_order = reverse_taxon_order
        self.reverse_rank_order = reverse_rank_order

    @classmethod
    def from_policy(cls, policy: ExtractionPolicy) -> "LineageParser":
        return cls(
            policy.taxon_separator,
            policy.rank_separator,
            reverse_taxon_order=policy.reverse_taxon_order,
            reverse_rank_order=policy.reverse_rank_order,
        )

    def parse(self, text: str, *, id_field: bool = False) -> List[TaxonDescriptor]:
        return parse_lineage(
            text,
            self.taxon_separator,
            self.rank_separator,
            self.reverse_taxon_order,
            self.reverse_rank_order,
            id_field=id_field,
        )

    def parse_many(
        self,
        texts: Sequence[str] | Iterable[str],
        *,
        id_field: bool = False,
        strict: bool = False,
    ) -> List[ParseOutcome]:
        """Parse every text; failures are kept per record unless ``strict``."""

        outcomes: List[ParseOutcome] = []
        for position, text in enumerate(texts):
            try:
                lineage = self.parse(text, id_field=id_field)
            except ParseError as exc:
                if strict:
                    raise
                _LOGGER.debug("Lineage failed to parse", position=position, error=str(exc))
                outcomes.append(ParseOutcome(position=position, text=str(text), error=exc))
                continue
            outcomes.append(ParseOutcome(position=position, text=text, lineage=lineage))
        return outcomes


__all__ = ["parse_lineage", "LineageParser", "ParseOutcome"]
