"""Per-record failure collection for lenient batch processing."""

from __future__ import annotations

from dataclasses import dataclass, field
from threading import RLock
from typing import Any, Dict, Mapping

from taxatree.utils.logging import get_logger

_LOGGER = get_logger(module=__name__)


@dataclass(frozen=True)
class Diagnostic:
    """One recorded per-record or per-taxon problem."""

    phase: str
    kind: str
    message: str
    record: int | None = None
    key: str | None = None
    sequence: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "phase": self.phase,
            "kind": self.kind,
            "message": self.message,
            "record": self.record,
            "key": self.key,
            "sequence": self.sequence,
        }


@dataclass(frozen=True)
class DiagnosticsSnapshot:
    """Immutable summary of collected diagnostics."""

    total: int
    by_kind: Mapping[str, int]
    items: tuple[Diagnostic, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "by_kind": dict(self.by_kind),
            "items": [item.to_dict() for item in self.items],
        }


class DiagnosticsCollector:
    """Collects failures so a batch can continue and report them once at the end.

    Entries keep insertion order through a sequence number guarded by a
    reentrant lock.
    """

    def __init__(self) -> None:
        self._lock = RLock()
        self._items: list[Diagnostic] = []
        self._kind_counts: Dict[str, int] = {}
        self._sequence = 0

    def record(
        self,
        *,
        phase: str,
        kind: str,
        message: str,
        record: int | None = None,
        key: str | None = None,
    ) -> Diagnostic:
        """Record a new diagnostic and return the captured entry."""

        if not kind:
            raise ValueError("kind must be provided for diagnostic entries")
        with self._lock:
            self._sequence += 1
            entry = Diagnostic(
                phase=phase,
                kind=kind,
                message=message,
                record=record,
                key=key,
                sequence=self._sequence,
            )
            self._items.append(entry)
            self._kind_counts[kind] = self._kind_counts.get(kind, 0) + 1
            return entry

    def counts(self) -> Mapping[str, int]:
        with self._lock:
            return dict(self._kind_counts)

    def snapshot(self) -> DiagnosticsSnapshot:
        with self._lock:
            items = tuple(self._items)
            summary = {kind: self._kind_counts[kind] for kind in sorted(self._kind_counts)}
            return DiagnosticsSnapshot(total=len(items), by_kind=summary, items=items)

    def report(self, phase: str) -> DiagnosticsSnapshot:
        """Log one aggregate summary for the batch and return the snapshot."""

        snapshot = self.snapshot()
        if snapshot.total:
            _LOGGER.warning(
                "Batch completed with per-record problems",
                phase=phase,
                total=snapshot.total,
                by_kind=dict(snapshot.by_kind),
            )
        return snapshot

    def __len__(self) -> int:  # pragma: no cover - convenience
        with self._lock:
            return len(self._items)

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        with self._lock:
            total = len(self._items)
            kinds = dict(self._kind_counts)
        return f"DiagnosticsCollector(total={total}, kinds={kinds})"


__all__ = ["Diagnostic", "DiagnosticsSnapshot", "DiagnosticsCollector"]
