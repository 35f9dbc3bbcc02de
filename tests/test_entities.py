"""Unit tests for taxatree.entities.core."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from taxatree.entities import IdOrigin, Item, LookupResult, LookupStatus, Taxon, TaxonDescriptor


def _taxon(**overrides) -> Taxon:
    values = {"index": 0, "taxon_id": "4751", "name": "Fungi", "id_origin": IdOrigin.RESOLVED}
    values.update(overrides)
    return Taxon(**values)


def test_descriptor_requires_name_or_identifier() -> None:
    with pytest.raises(ValueError):
        TaxonDescriptor(rank="genus")
    with pytest.raises(ValueError):
        TaxonDescriptor(name="   ")


def test_descriptor_strips_and_stringifies() -> None:
    descriptor = TaxonDescriptor(name="  Fungi ", rank=" ", taxon_id=4751)

    assert descriptor.name == "Fungi"
    assert descriptor.rank is None
    assert descriptor.taxon_id == "4751"


def test_descriptor_with_id_returns_copy() -> None:
    descriptor = TaxonDescriptor(name="Fungi")
    anchored = descriptor.with_id("4751")

    assert anchored.taxon_id == "4751"
    assert descriptor.taxon_id is None
    assert anchored.label() == "Fungi"
    assert TaxonDescriptor(taxon_id="4751").label() == "4751"


def test_taxon_structure_is_frozen() -> None:
    taxon = _taxon()

    with pytest.raises(ValidationError):
        taxon.taxon_id = "other"
    with pytest.raises(ValidationError):
        taxon.parent_index = 3


def test_taxon_fill_only_sets_unknown_values() -> None:
    taxon = _taxon(name=None)

    assert taxon.fill(name="Fungi", rank="kingdom") is True
    assert taxon.fill(name="Other", rank="phylum") is False
    assert (taxon.name, taxon.rank) == ("Fungi", "kingdom")


def test_taxon_cannot_be_its_own_parent() -> None:
    with pytest.raises(ValueError):
        _taxon(index=2, parent_index=2)


def test_taxon_origin_must_agree_with_identifier() -> None:
    with pytest.raises(ValueError):
        _taxon(id_origin=IdOrigin.UNRESOLVED)
    with pytest.raises(ValueError):
        _taxon(taxon_id=None, id_origin=IdOrigin.SYNTHETIC)

    unresolved = _taxon(taxon_id=None, id_origin=IdOrigin.UNRESOLVED)
    assert not unresolved.anchored
    assert unresolved.is_root
    assert unresolved.label() == "Fungi"


def test_item_is_frozen() -> None:
    item = Item(item_id="1", taxon_index=0, taxon_id="4751", attributes={"site": "A7"})

    with pytest.raises(ValidationError):
        item.item_id = "2"
    assert item.attributes["site"] == "A7"


def test_lookup_result_variants() -> None:
    found = LookupResult.found("4751")
    missing = LookupResult.not_found()
    ambiguous = LookupResult.ambiguous(["1", "2"])

    assert found.ok and found.value == "4751"
    assert missing.status is LookupStatus.NOT_FOUND and missing.value is None
    assert ambiguous.status is LookupStatus.AMBIGUOUS
    assert ambiguous.candidates == ("1", "2")
    assert not ambiguous.ok
