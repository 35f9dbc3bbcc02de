"""Core domain entities used throughout the lineage pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Generic, Tuple, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

V = TypeVar("V")


def _clean_optional(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        value = str(value)
    if isinstance(value, str):
        cleaned = value.strip()
        return cleaned or None
    return value


class IdOrigin(str, Enum):
    """Provenance of a taxon identifier."""

    RESOLVED = "resolved"
    SYNTHETIC = "synthetic"
    UNRESOLVED = "unresolved"


class TaxonDescriptor(BaseModel):
    """One parsed lineage segment that has not been assigned an identity yet."""

    model_config = ConfigDict(frozen=True)

    name: str | None = Field(default=None, description="Taxon name as written in the input")
    rank: str | None = Field(default=None, description="Rank token, when the input carries one")
    taxon_id: str | None = Field(
        default=None,
        description="Canonical identifier, when the input or a resolver supplied one.",
    )

    @field_validator("name", "rank", "taxon_id", mode="before")
    @classmethod
    def _strip(cls, value: Any) -> Any:
        return _clean_optional(value)

    @model_validator(mode="after")
    def _require_identity_hint(self) -> "TaxonDescriptor":
        if self.name is None and self.taxon_id is None:
            raise ValueError("a taxon descriptor needs a name or a taxon_id")
        return self

    def with_id(self, taxon_id: str | None) -> "TaxonDescriptor":
        return self.model_copy(update={"taxon_id": _clean_optional(taxon_id)})

    def label(self) -> str:
        return self.name or str(self.taxon_id)


class Taxon(BaseModel):
    """Canonical node of the taxon tree.

    Structural fields are frozen once the registry creates the node; ``name`` and
    ``rank`` may only be filled in while they are still unknown (see :meth:`fill`).
    ``parent_index`` is the authoritative parent reference; ``parent_id`` mirrors
    the parent's identifier for tabular export and is ``None`` for roots and for
    children of identifier-less parents.
    """

    model_config = ConfigDict(validate_assignment=True)

    index: int = Field(..., ge=0, frozen=True, description="Slot in the taxon arena")
    taxon_id: str | None = Field(default=None, frozen=True)
    name: str | None = Field(default=None)
    rank: str | None = Field(default=None)
    parent_index: int | None = Field(default=None, ge=0, frozen=True)
    parent_id: str | None = Field(default=None, frozen=True)
    id_origin: IdOrigin = Field(default=IdOrigin.UNRESOLVED, frozen=True)

    @field_validator("name", "rank", mode="before")
    @classmethod
    def _strip(cls, value: Any) -> Any:
        return _clean_optional(value)

    @model_validator(mode="after")
    def _validate_structure(self) -> "Taxon":
        if self.parent_index is not None and self.parent_index == self.index:
            raise ValueError(f"taxon at slot {self.index} cannot be its own parent")
        if self.id_origin is IdOrigin.UNRESOLVED and self.taxon_id is not None:
            raise ValueError("unresolved taxa must not carry an identifier")
        if self.id_origin is not IdOrigin.UNRESOLVED and self.taxon_id is None:
            raise ValueError(f"{self.id_origin.value} taxa must carry an identifier")
        return self

    @property
    def is_root(self) -> bool:
        return self.parent_index is None

    @property
    def anchored(self) -> bool:
        """Whether the taxon is identified by a canonical identifier."""

        return self.id_origin is IdOrigin.RESOLVED

    def fill(self, *, name: str | None = None, rank: str | None = None) -> bool:
        """Fill in ``name``/``rank`` left unknown at creation.

        Known values are never overwritten. Returns ``True`` when anything changed.
        """

        changed = False
        name = _clean_optional(name)
        rank = _clean_optional(rank)
        if name is not None and self.name is None:
            self.name = name
            changed = True
        if rank is not None and self.rank is None:
            self.rank = rank
            changed = True
        return changed

    def label(self) -> str:
        return self.name or self.taxon_id or f"#{self.index}"


class Item(BaseModel):
    """An input record bound to the leaf taxon of its lineage."""

    model_config = ConfigDict(frozen=True)

    item_id: str = Field(..., min_length=1)
    taxon_index: int = Field(..., ge=0)
    taxon_id: str | None = None
    attributes: Dict[str, Any] = Field(
        default_factory=dict,
        description="Item-scoped metadata keyed by output column.",
    )


class LookupStatus(str, Enum):
    """Outcome categories for one resolver key."""

    FOUND = "found"
    NOT_FOUND = "not_found"
    AMBIGUOUS = "ambiguous"


@dataclass(frozen=True)
class LookupResult(Generic[V]):
    """Explicit per-key resolver outcome carried alongside the value."""

    status: LookupStatus
    value: V | None = None
    candidates: Tuple[Any, ...] = field(default_factory=tuple)

    @classmethod
    def found(cls, value: V) -> "LookupResult[V]":
        return cls(LookupStatus.FOUND, value)

    @classmethod
    def not_found(cls) -> "LookupResult[V]":
        return cls(LookupStatus.NOT_FOUND)

    @classmethod
    def ambiguous(cls, candidates: Tuple[Any, ...] | list) -> "LookupResult[V]":
        return cls(LookupStatus.AMBIGUOUS, None, tuple(candidates))

    @property
    def ok(self) -> bool:
        return self.status is LookupStatus.FOUND


__all__ = [
    "IdOrigin",
    "TaxonDescriptor",
    "Taxon",
    "Item",
    "LookupStatus",
    "LookupResult",
]
