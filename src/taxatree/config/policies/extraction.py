"""Record capture and lineage parsing policy models."""

from __future__ import annotations

import re
from typing import Any, List, Literal, Mapping

from pydantic import BaseModel, Field, field_validator, model_validator

CaptureRole = Literal[
    "taxon_id",
    "taxon_name",
    "taxon_info",
    "class_id",
    "class_name",
    "item_id",
    "item_name",
    "item_info",
]

REPEATABLE_ROLES = frozenset({"taxon_info", "item_info"})
TAXON_SCOPED_ROLES = frozenset({"taxon_info"})
ITEM_SCOPED_ROLES = frozenset({"item_name", "item_info"})


class CaptureKey(BaseModel):
    """Semantic role assigned to one regex capture group.

    ``column`` names the output column; it defaults to the role itself so that
    ``"class_name"`` and ``{"role": "class_name"}`` are equivalent.
    """

    role: CaptureRole
    column: str | None = Field(default=None, min_length=1)

    @model_validator(mode="before")
    @classmethod
    def _coerce_shorthand(cls, value: Any) -> Any:
        if isinstance(value, str):
            return {"role": value.strip().lower()}
        return value

    @property
    def name(self) -> str:
        return self.column or self.role


class ExtractionPolicy(BaseModel):
    """How raw records are captured and how lineage strings are split."""

    regex: str = Field(
        default=r"^(.*)$",
        min_length=1,
        description="Regular expression whose capture groups map onto `keys`.",
    )
    keys: List[CaptureKey] = Field(
        default_factory=lambda: [CaptureKey(role="class_name")],
        min_length=1,
    )
    taxon_separator: str = Field(default=";", min_length=1)
    rank_separator: str | None = Field(
        default="__",
        description="Separator between rank and name inside one lineage segment.",
    )
    reverse_taxon_order: bool = Field(
        default=False,
        description="Lineage strings list the most specific taxon first.",
    )
    reverse_rank_order: bool = Field(
        default=False,
        description="Segments carry the name before the rank.",
    )
    taxon_in_lineage: bool = Field(
        default=True,
        description="The lineage string already ends with the item's own taxon.",
    )
    strict: bool = Field(
        default=False,
        description="Abort the batch on the first record that fails to parse.",
    )

    @field_validator("keys", mode="before")
    @classmethod
    def _expand_mapping_keys(cls, value: Any) -> Any:
        # {"seq_id": "item_info", ...} mirrors named capture keys
        if isinstance(value, Mapping):
            return [{"role": role, "column": column} for column, role in value.items()]
        return value

    @field_validator("rank_separator")
    @classmethod
    def _blank_rank_separator(cls, value: str | None) -> str | None:
        if value is not None and not value:
            return None
        return value

    @model_validator(mode="after")
    def _validate_capture_layout(self) -> "ExtractionPolicy":
        try:
            pattern = re.compile(self.regex)
        except re.error as exc:
            raise ValueError(f"regex does not compile: {exc}") from exc
        if pattern.groups != len(self.keys):
            raise ValueError(
                f"regex declares {pattern.groups} capture groups but {len(self.keys)} keys were given"
            )

        seen_roles: set[str] = set()
        for key in self.keys:
            if key.role in seen_roles and key.role not in REPEATABLE_ROLES:
                raise ValueError(f"capture role '{key.role}' may only be used once")
            seen_roles.add(key.role)

        columns = [key.name for key in self.keys]
        duplicates = sorted({column for column in columns if columns.count(column) > 1})
        if duplicates:
            raise ValueError(f"capture column names must be unique: {duplicates}")

        if self.rank_separator is not None and self.rank_separator == self.taxon_separator:
            raise ValueError("rank_separator must differ from taxon_separator")
        return self

    def compiled(self) -> re.Pattern[str]:
        return re.compile(self.regex)

    def roles(self) -> set[str]:
        return {key.role for key in self.keys}

    def columns_for(self, roles: frozenset[str] | set[str]) -> List[str]:
        return [key.name for key in self.keys if key.role in roles]


__all__ = [
    "CaptureRole",
    "CaptureKey",
    "ExtractionPolicy",
    "REPEATABLE_ROLES",
    "TAXON_SCOPED_ROLES",
    "ITEM_SCOPED_ROLES",
]
