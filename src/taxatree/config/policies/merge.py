"""Taxon registry merge policy models."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

ArbitraryIdPolicy = Literal["allow", "warn", "error", "na"]

ARBITRARY_ID_POLICIES: tuple[str, ...] = ("allow", "warn", "error", "na")


class MergePolicy(BaseModel):
    """Configuration controlling how lineages are merged into the taxon tree."""

    arbitrary_ids: ArbitraryIdPolicy = Field(
        default="warn",
        description="What to do when a new taxon has no canonical identifier.",
    )
    synthetic_id_prefix: str = Field(
        default="arb:",
        min_length=1,
        description="Prefix applied when synthesising identifiers.",
    )
    max_tree_size: int = Field(default=1_000_000, ge=1)
    verify_acyclicity: bool = Field(default=True)

    @field_validator("arbitrary_ids", mode="before")
    @classmethod
    def _lower_policy(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value


__all__ = ["ArbitraryIdPolicy", "MergePolicy", "ARBITRARY_ID_POLICIES"]
