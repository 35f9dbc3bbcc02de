"""Policy configuration primitives for lineage extraction, resolution and merging."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Mapping

from pydantic import BaseModel, Field, ValidationError, model_validator

from taxatree.exceptions import ConfigurationError

from ..overrides import deep_merge, env_overrides, read_yaml_mapping
from .extraction import (
    ITEM_SCOPED_ROLES,
    REPEATABLE_ROLES,
    TAXON_SCOPED_ROLES,
    CaptureKey,
    CaptureRole,
    ExtractionPolicy,
)
from .merge import ARBITRARY_ID_POLICIES, ArbitraryIdPolicy, MergePolicy
from .resolution import (
    ITEM_LOOKUP_DATABASES,
    SUPPORTED_DATABASES,
    Database,
    ResolutionPolicy,
)


class Policies(BaseModel):
    """Root policy container."""

    policy_version: str = Field(default="2025-10-01")
    extraction: ExtractionPolicy = Field(default_factory=ExtractionPolicy)
    resolution: ResolutionPolicy = Field(default_factory=ResolutionPolicy)
    merge: MergePolicy = Field(default_factory=MergePolicy)

    @model_validator(mode="after")
    def _validate_policy_version(self) -> "Policies":
        if not self.policy_version:
            raise ValueError("policy_version must be provided")
        return self


POLICY_ENV_PREFIX = "TAXATREE_POLICY__"


def load_policies(source: os.PathLike[str] | str | Mapping[str, Any]) -> Policies:
    """Load policies from a mapping or YAML file with environment overrides.

    Raises:
        ConfigurationError: If the file is missing or any policy value is invalid.
    """

    raw = dict(source) if isinstance(source, Mapping) else read_yaml_mapping(Path(source), required=True)
    # TAXATREE_POLICY__MERGE__ARBITRARY_IDS=na style variables win over the source
    merged = deep_merge(raw, env_overrides(POLICY_ENV_PREFIX))
    try:
        return Policies.model_validate(merged)
    except ValidationError as exc:
        raise ConfigurationError(f"invalid policy configuration: {exc}") from exc


__all__ = [
    "Policies",
    "POLICY_ENV_PREFIX",
    "load_policies",
    "CaptureKey",
    "CaptureRole",
    "ExtractionPolicy",
    "REPEATABLE_ROLES",
    "TAXON_SCOPED_ROLES",
    "ITEM_SCOPED_ROLES",
    "ResolutionPolicy",
    "Database",
    "SUPPORTED_DATABASES",
    "ITEM_LOOKUP_DATABASES",
    "MergePolicy",
    "ArbitraryIdPolicy",
    "ARBITRARY_ID_POLICIES",
]
