"""Capture semantic fragments from labelled text using the configured pattern."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Sequence

from taxatree.config.policies import REPEATABLE_ROLES, ExtractionPolicy
from taxatree.entities.core import TaxonDescriptor
from taxatree.exceptions import ParseError, TaxaTreeError
from taxatree.utils.logging import get_logger

from .inputs import LabeledText

_LOGGER = get_logger(module=__name__)


@dataclass(slots=True)
class ParsedRecord:
    """One input record after capture (and, later, lineage parsing)."""

    position: int
    text: str
    captures: Dict[str, str] = field(default_factory=dict)
    roles: Dict[str, str] = field(default_factory=dict)
    sequence: str | None = None
    lineage: List[TaxonDescriptor] = field(default_factory=list)
    error: TaxaTreeError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def role(self, role: str) -> str | None:
        """Return the captured value for a single-use role, or ``None``."""

        return self.roles.get(role)

    def fail(self, error: TaxaTreeError) -> None:
        if self.error is None:
            self.error = error


class RecordExtractor:
    """Apply the capture pattern of an :class:`ExtractionPolicy` to records."""

    def __init__(self, policy: ExtractionPolicy) -> None:
        self._policy = policy
        self._pattern = policy.compiled()
        self._keys = list(policy.keys)

    @property
    def policy(self) -> ExtractionPolicy:
        return self._policy

    def extract(self, entry: LabeledText) -> ParsedRecord:
        """Capture one record.

        Raises:
            ParseError: If the text is not a string, does not match the pattern,
                or leaves a capture group unset.
        """

        text = entry.text
        if not isinstance(text, str):
            raise ParseError(
                f"record {entry.position} is not text ({type(text).__name__})",
                record=entry.position,
            )
        match = self._pattern.search(text)
        if match is None:
            raise ParseError(
                f"record {entry.position} does not match the capture pattern",
                record=entry.position,
            )

        captures: Dict[str, str] = {}
        roles: Dict[str, str] = {}
        for key, value in zip(self._keys, match.groups()):
            if value is None:
                raise ParseError(
                    f"capture group for '{key.name}' did not match in record {entry.position}",
                    record=entry.position,
                )
            value = value.strip()
            captures[key.name] = value
            if key.role not in REPEATABLE_ROLES:
                roles[key.role] = value
        return ParsedRecord(
            position=entry.position,
            text=text,
            captures=captures,
            roles=roles,
            sequence=entry.sequence,
        )

    def extract_many(
        self,
        entries: Sequence[LabeledText],
        *,
        strict: bool | None = None,
    ) -> List[ParsedRecord]:
        """Capture every record; failures stay attached to their record unless strict."""

        strict = self._policy.strict if strict is None else strict
        records: List[ParsedRecord] = []
        for entry in entries:
            try:
                records.append(self.extract(entry))
            except ParseError as exc:
                if strict:
                    raise
                records.append(
                    ParsedRecord(
                        position=entry.position,
                        text=str(entry.text),
                        sequence=entry.sequence,
                        error=exc,
                    )
                )
        failed = sum(1 for record in records if not record.ok)
        _LOGGER.debug("Captured records", total=len(records), failed=failed)
        return records


__all__ = ["ParsedRecord", "RecordExtractor"]
