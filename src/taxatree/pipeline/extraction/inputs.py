"""Input adapters turning supported input shapes into labelled text records.

Two shapes are accepted: plain text records (e.g. FASTA headers or lines of a
taxonomy table) and sequence records pairing a header with its sequence. Both
feed the same capture/parse pipeline; sequence records also contribute a
``sequence`` item column.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, List, Mapping, Sequence, TextIO, Union

from Bio import SeqIO

from taxatree.exceptions import ConfigurationError

SEQUENCE_COLUMN = "sequence"


@dataclass(frozen=True, slots=True)
class SequenceRecord:
    """A header/sequence pair such as one FASTA entry."""

    header: str
    sequence: str


@dataclass(frozen=True, slots=True)
class LabeledText:
    """Text to run the capture pattern against, tagged with its input position."""

    position: int
    text: Any
    sequence: str | None = None


InputRecords = Union[Sequence[str], Sequence[SequenceRecord], Mapping[str, str]]


def labeled_texts(records: InputRecords | Iterable[Any]) -> List[LabeledText]:
    """Normalise any supported input shape into :class:`LabeledText` entries."""

    if isinstance(records, (str, bytes)):
        raise ConfigurationError("input must be a collection of records, not a single string")
    if isinstance(records, Mapping):
        return [
            LabeledText(position=position, text=header, sequence=str(sequence))
            for position, (header, sequence) in enumerate(records.items())
        ]

    labeled: List[LabeledText] = []
    for position, record in enumerate(records):
        if isinstance(record, SequenceRecord):
            labeled.append(LabeledText(position=position, text=record.header, sequence=record.sequence))
        else:
            labeled.append(LabeledText(position=position, text=record))
    return labeled


def parse_fasta(source: TextIO | str | Path) -> List[SequenceRecord]:
    """Read FASTA entries from an open handle or a path.

    Headers keep the whole description line after ``>``; wrapped sequence lines
    are joined with any whitespace removed.
    """

    return [
        SequenceRecord(header=record.description.strip(), sequence="".join(str(record.seq).split()))
        for record in SeqIO.parse(source, "fasta")
    ]


__all__ = [
    "SEQUENCE_COLUMN",
    "SequenceRecord",
    "LabeledText",
    "InputRecords",
    "labeled_texts",
    "parse_fasta",
]
