"""Tests for merging lineages into the taxon tree."""

from __future__ import annotations

import pytest

from taxatree.config.policies import MergePolicy
from taxatree.entities.core import IdOrigin, TaxonDescriptor
from taxatree.exceptions import ConfigurationError, TaxaTreeError, TaxonLookupError
from taxatree.pipeline.hierarchy import TaxonRegistry


def make_registry(arbitrary_ids: str = "allow", **kwargs) -> TaxonRegistry:
    return TaxonRegistry(MergePolicy(arbitrary_ids=arbitrary_ids, **kwargs))


def named(*names: str, rank: str | None = None) -> list[TaxonDescriptor]:
    return [TaxonDescriptor(name=name, rank=rank) for name in names]


def shape(registry: TaxonRegistry) -> list[tuple[int, int | None, str | None]]:
    return [(taxon.index, taxon.parent_index, taxon.name) for taxon in registry.tree.taxa()]


def test_merge_builds_fungi_tree() -> None:
    registry = make_registry()
    registry.merge(named("Fungi", "Ascomycota", "Saccharomycetes"))
    registry.merge(named("Fungi", "Basidiomycota", "Agaricomycetes"))

    tree = registry.tree
    assert len(tree) == 5
    assert [tree.get(index).name for index in tree.root_indexes()] == ["Fungi"]
    fungi = tree.find("Fungi")[0]
    assert [tree.get(index).name for index in tree.children_of(fungi)] == ["Ascomycota", "Basidiomycota"]
    for child in tree.children_of(fungi):
        assert len(tree.children_of(child)) == 1


def test_merge_returns_path_and_identifiers() -> None:
    registry = make_registry()
    result = registry.merge(named("Fungi", "Ascomycota"))

    assert result.path == [0, 1]
    assert result.taxon_ids == ["arb:1", "arb:2"]
    assert result.created == [0, 1]
    assert result.leaf == 1
    assert result.leaf_id == "arb:2"


def test_merge_is_idempotent() -> None:
    registry = make_registry()
    first = registry.merge(named("Fungi", "Ascomycota", "Saccharomycetes"))
    before = shape(registry)
    second = registry.merge(named("Fungi", "Ascomycota", "Saccharomycetes"))

    assert shape(registry) == before
    assert second.path == first.path
    assert second.created == []


def test_merge_reuses_shared_prefix() -> None:
    registry = make_registry()
    first = registry.merge(named("Fungi", "Ascomycota", "Saccharomycetes"))
    second = registry.merge(named("Fungi", "Ascomycota", "Sordariomycetes"))

    assert len(registry) == 4
    assert second.path[:2] == first.path[:2]
    assert [registry.tree.get(index).name for index in second.created] == ["Sordariomycetes"]


def test_identifier_precedence_keeps_homonyms_apart() -> None:
    registry = make_registry()
    registry.merge(["1", TaxonDescriptor(name="Morus", rank="genus", taxon_id="100")])
    registry.merge(["1", TaxonDescriptor(name="Morus", rank="genus", taxon_id="200")])

    tree = registry.tree
    assert len(tree) == 3
    assert tree.by_id("100").parent_index == tree.by_id("200").parent_index
    assert tree.by_id("100").index != tree.by_id("200").index


def test_anchored_taxon_is_not_matched_by_name_only_descriptor() -> None:
    registry = make_registry()
    registry.merge([TaxonDescriptor(name="Fungi", taxon_id="4751")])
    registry.merge(named("Fungi"))

    tree = registry.tree
    assert len(tree) == 2
    origins = sorted(taxon.id_origin.value for taxon in tree.taxa())
    assert origins == ["resolved", "synthetic"]


def test_ranks_distinguish_name_only_siblings() -> None:
    registry = make_registry()
    registry.merge(named("Incertae", rank="genus"))
    registry.merge(named("Incertae", rank="family"))
    registry.merge(named("Incertae", rank="genus"))

    assert len(registry) == 2


def test_allow_policy_assigns_synthetic_identifiers_quietly() -> None:
    registry = make_registry("allow")
    result = registry.merge(named("Fungi", "Ascomycota"))

    assert result.taxon_ids == ["arb:1", "arb:2"]
    assert all(registry.tree.get(index).id_origin is IdOrigin.SYNTHETIC for index in result.path)
    assert result.diagnostics == []
    assert len(registry.diagnostics) == 0


def test_warn_policy_reports_each_arbitrary_identifier() -> None:
    registry = make_registry("warn")
    result = registry.merge(named("Fungi", "Ascomycota"))

    assert result.taxon_ids == ["arb:1", "arb:2"]
    assert [diagnostic.kind for diagnostic in result.diagnostics] == ["arbitrary_id", "arbitrary_id"]
    assert [diagnostic.key for diagnostic in result.diagnostics] == ["Fungi", "Ascomycota"]
    assert registry.diagnostics.counts() == {"arbitrary_id": 2}


def test_na_policy_leaves_identifiers_empty() -> None:
    registry = make_registry("na")
    result = registry.merge(named("Fungi", "Ascomycota"))

    assert result.taxon_ids == [None, None]
    taxa = registry.tree.taxa()
    assert all(taxon.id_origin is IdOrigin.UNRESOLVED for taxon in taxa)
    assert taxa[1].parent_index == 0
    assert taxa[1].parent_id is None


def test_error_policy_aborts_whole_merge() -> None:
    registry = make_registry("error")
    registry.merge(["4751"])

    with pytest.raises(TaxonLookupError) as excinfo:
        registry.merge(["4751", "4890", TaxonDescriptor(name="Unknownus")])
    assert excinfo.value.key == "Unknownus"
    assert len(registry) == 1


def test_taxon_lookup_error_is_builtin_lookup_error() -> None:
    registry = make_registry("error")

    with pytest.raises(LookupError):
        registry.merge(named("Fungi"))


def test_policy_invariance_of_topology() -> None:
    lineages = [
        ("Fungi", "Ascomycota", "Saccharomycetes"),
        ("Fungi", "Basidiomycota", "Agaricomycetes"),
        ("Fungi", "Ascomycota", "Sordariomycetes"),
        ("Metazoa", "Chordata"),
    ]
    allow = make_registry("allow")
    na = make_registry("na")
    for lineage in lineages:
        allow.merge(named(*lineage))
        na.merge(named(*lineage))

    assert shape(allow) == shape(na)
    assert all(taxon.taxon_id is not None for taxon in allow.tree.taxa())
    assert all(taxon.taxon_id is None for taxon in na.tree.taxa())


def test_synthetic_identifiers_skip_identifiers_in_use() -> None:
    registry = make_registry("allow")
    registry.merge(["arb:1"])
    result = registry.merge(named("Fungi"))

    assert result.leaf_id == "arb:2"


def test_custom_synthetic_prefix() -> None:
    registry = make_registry("allow", synthetic_id_prefix="local-")
    result = registry.merge(named("Fungi"))

    assert result.leaf_id == "local-1"


def test_identifier_under_different_parent_is_demoted() -> None:
    registry = make_registry("warn")
    registry.merge(["1", "2"])
    result = registry.merge(["3", "2"])

    tree = registry.tree
    assert len(tree) == 4
    demoted = tree.get(result.leaf)
    assert demoted.name == "2"
    assert demoted.id_origin is IdOrigin.SYNTHETIC
    assert demoted.parent_index == tree.index_of("3")
    assert "id_conflict" in registry.diagnostics.counts()

    again = registry.merge(["3", "2"])
    assert again.path == result.path
    assert len(tree) == 4


def test_identifier_conflict_raises_under_error_policy() -> None:
    registry = make_registry("error")
    registry.merge(["1", "2"])

    with pytest.raises(TaxonLookupError) as excinfo:
        registry.merge(["3", "2"])
    assert excinfo.value.key == "2"
    assert len(registry) == 2


def test_repeated_identifier_within_one_lineage_is_demoted() -> None:
    registry = make_registry("allow")
    result = registry.merge(["1", "2", "1"])

    assert len(registry) == 3
    assert registry.tree.get(result.leaf).id_origin is IdOrigin.SYNTHETIC


def test_max_tree_size_is_enforced_before_inserting() -> None:
    registry = make_registry("allow", max_tree_size=2)

    with pytest.raises(TaxaTreeError):
        registry.merge(named("Fungi", "Ascomycota", "Saccharomycetes"))
    assert len(registry) == 0


def test_merge_rejects_empty_lineage() -> None:
    registry = make_registry()

    with pytest.raises(TaxaTreeError):
        registry.merge([])


def test_merge_fills_unknown_name_on_match() -> None:
    registry = make_registry()
    registry.merge(["4751"])
    registry.merge([TaxonDescriptor(taxon_id="4751", name="Fungi", rank="kingdom")])

    taxon = registry.tree.by_id("4751")
    assert taxon.name == "Fungi"
    assert taxon.rank == "kingdom"
    assert len(registry) == 1


def test_annotate_only_fills_unknown_fields() -> None:
    registry = make_registry()
    registry.merge(["4751"])

    assert registry.annotate("4751", name="Fungi", rank="kingdom") is True
    assert registry.annotate("4751", name="Other") is False
    assert registry.tree.by_id("4751").name == "Fungi"


def test_annotate_unknown_taxon_raises() -> None:
    registry = make_registry()

    with pytest.raises(TaxonLookupError):
        registry.annotate("missing", name="x")


def test_parent_identifier_is_recorded() -> None:
    registry = make_registry()
    registry.merge(["1", "2"])

    child = registry.tree.by_id("2")
    assert child.parent_id == "1"
    assert registry.tree.by_id("1").parent_id is None


def test_unsupported_policy_is_a_configuration_error() -> None:
    policy = MergePolicy.model_construct(arbitrary_ids="sometimes")

    with pytest.raises(ConfigurationError):
        TaxonRegistry(policy)


def test_every_parent_chain_terminates() -> None:
    registry = make_registry()
    registry.merge(named("Fungi", "Ascomycota", "Saccharomycetes"))
    registry.merge(named("Fungi", "Basidiomycota"))

    tree = registry.tree
    for taxon in tree.taxa():
        steps = 0
        parent = taxon.parent_index
        while parent is not None:
            steps += 1
            parent = tree.parent_of(parent)
        assert steps <= len(tree)
