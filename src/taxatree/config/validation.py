"""Eager configuration validation performed before any record is parsed."""

from __future__ import annotations

from enum import Enum

from taxatree.exceptions import ConfigurationError

from .policies import (
    ARBITRARY_ID_POLICIES,
    ITEM_LOOKUP_DATABASES,
    SUPPORTED_DATABASES,
    Policies,
)


class LineageSource(str, Enum):
    """Where the classification of each record comes from."""

    CLASS_ID = "class_id"
    TAXON_ID = "taxon_id"
    CLASS_NAME = "class_name"
    ITEM_ID = "item_id"
    TAXON_NAME = "taxon_name"

    @property
    def needs_resolver(self) -> bool:
        return self in {LineageSource.TAXON_ID, LineageSource.ITEM_ID, LineageSource.TAXON_NAME}


def select_lineage_source(roles: set[str], *, database: str) -> LineageSource:
    """Pick the lineage source from the captured roles.

    With a database, a captured taxon identifier is looked up first. Embedded
    identifier lineages come next, then identifiers derived from item ids or
    taxon names, and embedded name lineages last. Item identifiers are only
    used with databases that can map them to taxa.
    """

    online = database != "none"

    if "taxon_id" in roles and online:
        return LineageSource.TAXON_ID
    if "class_id" in roles:
        return LineageSource.CLASS_ID
    if "item_id" in roles and database in ITEM_LOOKUP_DATABASES:
        return LineageSource.ITEM_ID
    if "taxon_name" in roles and online:
        return LineageSource.TAXON_NAME
    if "class_name" in roles:
        return LineageSource.CLASS_NAME
    raise ConfigurationError(
        "Insufficient information supplied to infer lineages: capture `class_id` or "
        "`class_name`, or select a database to look up `taxon_id`, `item_id` or `taxon_name`"
    )


def validate_configuration(policies: Policies) -> LineageSource:
    """Validate an explicit policy bundle and return the lineage source it implies.

    Pure function of ``policies``; policies built with ``model_construct`` skip
    pydantic validation, so enumerated values are re-checked here.

    Raises:
        ConfigurationError: If any setting is unsupported or the capture roles
            cannot produce a lineage.
    """

    merge = policies.merge
    if merge.arbitrary_ids not in ARBITRARY_ID_POLICIES:
        raise ConfigurationError(
            f"unsupported arbitrary_ids policy '{merge.arbitrary_ids}'; "
            f"expected one of {list(ARBITRARY_ID_POLICIES)}"
        )
    resolution = policies.resolution
    if resolution.database not in SUPPORTED_DATABASES:
        raise ConfigurationError(
            f"unsupported database '{resolution.database}'; expected one of {list(SUPPORTED_DATABASES)}"
        )

    extraction = policies.extraction
    roles = extraction.roles()
    source = select_lineage_source(roles, database=resolution.database)
    if not extraction.taxon_in_lineage:
        if source is LineageSource.CLASS_ID and "taxon_id" not in roles:
            raise ConfigurationError(
                "taxon_in_lineage=false with a `class_id` lineage requires a `taxon_id` capture"
            )
        if source is LineageSource.CLASS_NAME and "taxon_name" not in roles:
            raise ConfigurationError(
                "taxon_in_lineage=false with a `class_name` lineage requires a `taxon_name` capture"
            )
    return source


__all__ = ["LineageSource", "select_lineage_source", "validate_configuration"]
