"""Tests for record capture and input adapters."""

from __future__ import annotations

from io import StringIO
from pathlib import Path

import pytest

from taxatree.config.policies import ExtractionPolicy
from taxatree.exceptions import ConfigurationError, ParseError
from taxatree.pipeline.extraction import (
    LabeledText,
    RecordExtractor,
    SequenceRecord,
    labeled_texts,
    parse_fasta,
)


def make_extractor(regex: str, keys) -> RecordExtractor:
    return RecordExtractor(ExtractionPolicy(regex=regex, keys=keys))


def test_extract_maps_groups_onto_roles() -> None:
    extractor = make_extractor(r"^(\S+) (.+)$", ["item_id", "class_name"])
    record = extractor.extract(LabeledText(position=0, text="seq1 Fungi;Ascomycota"))

    assert record.ok
    assert record.role("item_id") == "seq1"
    assert record.role("class_name") == "Fungi;Ascomycota"
    assert record.captures == {"item_id": "seq1", "class_name": "Fungi;Ascomycota"}


def test_extract_uses_column_names_for_info_roles() -> None:
    extractor = make_extractor(
        r"^(\S+)\|(\S+)\|(\S+)\|(.+)$",
        [
            "item_id",
            {"role": "taxon_info", "column": "habitat"},
            {"role": "item_info", "column": "site"},
            "class_name",
        ],
    )
    record = extractor.extract(LabeledText(position=3, text="s1|soil|A7|Fungi"))

    assert record.captures["habitat"] == "soil"
    assert record.captures["site"] == "A7"
    assert record.role("taxon_info") is None
    assert record.position == 3


def test_extract_mapping_shorthand_for_keys() -> None:
    policy = ExtractionPolicy(regex=r"^(\S+) (.+)$", keys={"accession": "item_id", "lineage": "class_name"})
    record = RecordExtractor(policy).extract(LabeledText(position=0, text="AB1 Fungi"))

    assert record.role("item_id") == "AB1"
    assert record.captures["lineage"] == "Fungi"


def test_extract_rejects_non_matching_text() -> None:
    extractor = make_extractor(r"^(\S+) (.+)$", ["item_id", "class_name"])

    with pytest.raises(ParseError) as excinfo:
        extractor.extract(LabeledText(position=4, text="no-space"))
    assert excinfo.value.record == 4


def test_extract_rejects_unset_optional_group() -> None:
    extractor = make_extractor(r"^(\w+)(?: (\w+))?$", ["item_id", "class_name"])

    with pytest.raises(ParseError):
        extractor.extract(LabeledText(position=0, text="abc"))


def test_extract_rejects_non_text_records() -> None:
    extractor = make_extractor(r"^(.*)$", ["class_name"])

    with pytest.raises(ParseError):
        extractor.extract(LabeledText(position=0, text=42))


def test_extract_many_keeps_failures_in_place() -> None:
    extractor = make_extractor(r"^(\S+) (.+)$", ["item_id", "class_name"])
    records = extractor.extract_many(labeled_texts(["a Fungi", "broken", "b Fungi"]))

    assert [record.ok for record in records] == [True, False, True]
    assert records[1].position == 1
    assert isinstance(records[1].error, ParseError)


def test_extract_many_strict_raises() -> None:
    extractor = make_extractor(r"^(\S+) (.+)$", ["item_id", "class_name"])

    with pytest.raises(ParseError):
        extractor.extract_many(labeled_texts(["a Fungi", "broken"]), strict=True)


def test_labeled_texts_from_plain_records() -> None:
    labeled = labeled_texts(["Fungi", "Fungi;Ascomycota"])

    assert [entry.position for entry in labeled] == [0, 1]
    assert [entry.text for entry in labeled] == ["Fungi", "Fungi;Ascomycota"]
    assert all(entry.sequence is None for entry in labeled)


def test_labeled_texts_from_sequence_mapping() -> None:
    labeled = labeled_texts({"Fungi;Ascomycota": "ACGT", "Fungi": "TTGA"})

    assert [entry.text for entry in labeled] == ["Fungi;Ascomycota", "Fungi"]
    assert [entry.sequence for entry in labeled] == ["ACGT", "TTGA"]


def test_labeled_texts_from_sequence_records() -> None:
    labeled = labeled_texts([SequenceRecord(header="Fungi", sequence="AC")])

    assert labeled[0].text == "Fungi"
    assert labeled[0].sequence == "AC"


def test_labeled_texts_rejects_single_string() -> None:
    with pytest.raises(ConfigurationError):
        labeled_texts("Fungi;Ascomycota")


def test_parse_fasta_joins_wrapped_sequences() -> None:
    handle = StringIO(">seq1 Fungi;Ascomycota\nACGT\nTTGA\n>seq2 Fungi\nCCCC\n")
    records = parse_fasta(handle)

    assert records == [
        SequenceRecord(header="seq1 Fungi;Ascomycota", sequence="ACGTTTGA"),
        SequenceRecord(header="seq2 Fungi", sequence="CCCC"),
    ]


def test_parse_fasta_reads_path(tmp_path: Path) -> None:
    path = tmp_path / "reads.fa"
    path.write_text(">only\nAC\nGT\n", encoding="utf-8")

    assert parse_fasta(path) == [SequenceRecord(header="only", sequence="ACGT")]


def test_parse_fasta_empty_input() -> None:
    assert parse_fasta(StringIO("")) == []
