"""Record capture and lineage parsing public API."""

from __future__ import annotations

from .capture import ParsedRecord, RecordExtractor
from .inputs import (
    SEQUENCE_COLUMN,
    InputRecords,
    LabeledText,
    SequenceRecord,
    labeled_texts,
    parse_fasta,
)
from .parser import LineageParser, ParseOutcome, parse_lineage

__all__ = [
    "parse_lineage",
    "LineageParser",
    "ParseOutcome",
    "ParsedRecord",
    "RecordExtractor",
    "SEQUENCE_COLUMN",
    "InputRecords",
    "LabeledText",
    "SequenceRecord",
    "labeled_texts",
    "parse_fasta",
]
