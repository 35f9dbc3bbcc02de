"""Deduplicated, chunked and time-bounded resolver calls."""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from typing import Callable, Dict, Generic, Iterable, List, Sequence, TypeVar

from taxatree.config.policies import MergePolicy, ResolutionPolicy
from taxatree.entities.core import LookupResult, LookupStatus
from taxatree.exceptions import TaxaTreeError, TaxonLookupError
from taxatree.observability.diagnostics import DiagnosticsCollector
from taxatree.utils.helpers import chunked, unique_in_order
from taxatree.utils.logging import get_logger

from .resolver import IdResolver

_LOGGER = get_logger(module=__name__)

V = TypeVar("V")

LookupCall = Callable[[Sequence[str]], Dict[str, LookupResult[V]]]


class BatchLookup(Generic[V]):
    """Run one resolver operation over many keys.

    Each distinct key is sent once, in chunks of ``batch_size``, and every chunk
    must answer within ``timeout_seconds``. Under the ``error`` arbitrary-ID
    policy the first unresolved key aborts the batch; otherwise failures are
    recorded as diagnostics and returned alongside the successes.
    """

    def __init__(
        self,
        call: LookupCall[V],
        *,
        operation: str,
        policy: ResolutionPolicy | None = None,
        merge_policy: MergePolicy | None = None,
        diagnostics: DiagnosticsCollector | None = None,
    ) -> None:
        self._call = call
        self._operation = operation
        self._policy = policy or ResolutionPolicy()
        self._fail_fast = (merge_policy or MergePolicy()).arbitrary_ids == "error"
        self._diagnostics = diagnostics or DiagnosticsCollector()

    @classmethod
    def for_resolver(
        cls,
        resolver: IdResolver,
        operation: str,
        **kwargs,
    ) -> "BatchLookup":
        call = getattr(resolver, operation, None)
        if call is None:
            raise TaxaTreeError(f"resolver {type(resolver).__name__} has no operation '{operation}'")
        return cls(call, operation=operation, **kwargs)

    def run(self, keys: Iterable[str]) -> Dict[str, LookupResult[V]]:
        """Resolve ``keys``; the returned mapping covers every distinct key."""

        distinct = unique_in_order(keys)
        results: Dict[str, LookupResult[V]] = {}
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="taxatree-lookup")
        try:
            for chunk in chunked(distinct, self._policy.batch_size):
                answered = self._invoke(executor, chunk)
                for key in chunk:
                    result = answered.get(key)
                    results[key] = result if result is not None else LookupResult.not_found()
                    if not results[key].ok:
                        self._handle_failure(key, results[key])
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        failed = sum(1 for result in results.values() if not result.ok)
        _LOGGER.debug(
            "Resolver batch completed",
            operation=self._operation,
            keys=len(distinct),
            failed=failed,
        )
        return results

    def broadcast(self, keys: Sequence[str | None]) -> List[LookupResult[V] | None]:
        """Resolve ``keys`` and return one result per requester, in order."""

        results = self.run(key for key in keys if key is not None)
        return [None if key is None else results[key] for key in keys]

    def _invoke(self, executor: ThreadPoolExecutor, chunk: List[str]) -> Dict[str, LookupResult[V]]:
        future = executor.submit(self._call, chunk)
        try:
            return future.result(timeout=self._policy.timeout_seconds)
        except FuturesTimeoutError as exc:
            self._abandon(future, chunk)
            raise TaxonLookupError(
                f"{self._operation} timed out after {self._policy.timeout_seconds}s "
                f"for a batch of {len(chunk)} keys",
                key=chunk[0],
            ) from exc
        except TaxaTreeError:
            raise
        except Exception as exc:
            raise TaxonLookupError(f"{self._operation} failed: {exc}", key=chunk[0]) from exc

    def _abandon(self, future: Future, chunk: List[str]) -> None:
        # A running call cannot be interrupted; it is left to finish in the background.
        if future.cancel():
            return
        _LOGGER.warning(
            "Abandoned timed-out resolver call",
            operation=self._operation,
            keys=len(chunk),
            timeout_seconds=self._policy.timeout_seconds,
        )
        future.add_done_callback(
            lambda done: _LOGGER.debug(
                "Abandoned resolver call finished",
                operation=self._operation,
                failed=done.exception() is not None,
            )
        )

    def _handle_failure(self, key: str, result: LookupResult[V]) -> None:
        if result.status is LookupStatus.AMBIGUOUS:
            message = f"'{key}' matched {len(result.candidates)} taxa"
            kind = "ambiguous"
        else:
            message = f"'{key}' was not found"
            kind = "not_found"
        if self._fail_fast:
            raise TaxonLookupError(f"{self._operation}: {message}", key=key)
        self._diagnostics.record(phase=self._operation, kind=kind, message=message, key=key)


__all__ = ["BatchLookup", "LookupCall"]
