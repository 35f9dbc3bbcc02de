"""Resolver selection and lookup batching policy models."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator

Database = Literal["ncbi", "itis", "eol", "col", "tropicos", "nbn", "none"]

SUPPORTED_DATABASES: tuple[str, ...] = ("ncbi", "itis", "eol", "col", "tropicos", "nbn", "none")
ITEM_LOOKUP_DATABASES = frozenset({"ncbi"})


class ResolutionPolicy(BaseModel):
    """Which identifier resolver to consult and how to call it."""

    database: Database = Field(
        default="none",
        description="Taxonomic database namespace; `none` disables all lookups.",
    )
    reference_table: Path | None = Field(
        default=None,
        description="JSONL reference dump backing the offline resolver.",
    )
    batch_size: int = Field(default=100, ge=1)
    timeout_seconds: float = Field(default=30.0, gt=0.0)

    @field_validator("database", mode="before")
    @classmethod
    def _lower_database(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @property
    def offline(self) -> bool:
        return self.database == "none"


__all__ = ["Database", "ResolutionPolicy", "SUPPORTED_DATABASES", "ITEM_LOOKUP_DATABASES"]
