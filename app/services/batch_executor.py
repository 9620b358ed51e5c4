"""
app/services/batch_executor.py

Chunked, bounded-concurrency insertion of validated order rows.

Each batch is one ``OrderStore.insert_batch`` call on a worker thread. A batch
that raises fails only its own rows. No new batch starts once the run is
cancelled or past its deadline; rows that never reached the store are counted
as not attempted.
"""

from __future__ import annotations

import logging
from collections import deque
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Sequence

from app.domain.import_context import ImportContext
from app.domain.order_import import BatchResult, ImportRow, RowFailure
from app.repositories.order_store import OrderStore

logger = logging.getLogger(__name__)

MISSING_OUTCOME_MESSAGE = "store did not report an outcome"
TIMEOUT_OUTCOME_MESSAGE = "batch outcome unknown: store call exceeded the import timeout"

_DEFAULT_POLL_INTERVAL = 0.05


@dataclass(frozen=True)
class ExecutionResult:
    """
    Aggregate outcome of one ``BatchExecutor.execute`` call.
    """

    batch_results: tuple[BatchResult, ...]
    not_attempted_rows: int
    cancelled: bool
    timed_out: bool

    @property
    def inserted_rows(self) -> int:
        return sum(result.inserted for result in self.batch_results)

    @property
    def failed_rows(self) -> int:
        return sum(result.failed for result in self.batch_results)

    @property
    def failures(self) -> list[RowFailure]:
        return [failure for result in self.batch_results for failure in result.failures]


class BatchExecutor:
    """
    Inserts rows through an ``OrderStore`` in fixed-size batches.
    """

    def __init__(
        self,
        store: OrderStore,
        *,
        batch_size: int = 100,
        max_concurrency: int = 2,
        grace_seconds: float = 10.0,
        poll_interval: float = _DEFAULT_POLL_INTERVAL,
    ) -> None:
        self._store = store
        self._batch_size = max(1, batch_size)
        self._max_concurrency = max(1, max_concurrency)
        self._grace_seconds = max(0.0, grace_seconds)
        self._poll_interval = max(0.001, poll_interval)

    def execute(self, rows: Sequence[ImportRow], *, context: ImportContext) -> ExecutionResult:
        """
        Insert ``rows`` and return per-batch results in batch order.

        Batches already running when the run is cancelled are allowed to
        finish. After a timeout they get ``grace_seconds``; any still running
        then are recorded as failed with an unknown outcome.
        """

        batches = [list(rows[start : start + self._batch_size]) for start in range(0, len(rows), self._batch_size)]
        pending: deque[tuple[int, list[ImportRow]]] = deque(enumerate(batches))
        in_flight: dict[Future[BatchResult], tuple[int, list[ImportRow]]] = {}
        results: dict[int, BatchResult] = {}

        if not batches:
            return ExecutionResult(batch_results=(), not_attempted_rows=0, cancelled=context.cancelled, timed_out=False)

        pool = ThreadPoolExecutor(
            max_workers=min(self._max_concurrency, len(batches)),
            thread_name_prefix=f"order-import-{context.run_id[:8]}",
        )
        try:
            while pending or in_flight:
                while pending and len(in_flight) < self._max_concurrency and not context.should_stop():
                    batch_index, batch = pending.popleft()
                    future = pool.submit(self._insert_batch, batch_index, batch, context.run_id)
                    in_flight[future] = (batch_index, batch)

                if not in_flight:
                    break

                if context.timed_out:
                    self._drain_after_timeout(in_flight, results)
                    break

                done, _ = wait(tuple(in_flight), timeout=self._poll_interval, return_when=FIRST_COMPLETED)
                for future in done:
                    batch_index, _batch = in_flight.pop(future)
                    results[batch_index] = future.result()
        finally:
            pool.shutdown(wait=False, cancel_futures=True)

        not_attempted = sum(len(batch) for _, batch in pending)
        timed_out = context.timed_out and (
            not_attempted > 0 or any(result.error == TIMEOUT_OUTCOME_MESSAGE for result in results.values())
        )
        cancelled = context.cancelled

        if not_attempted:
            logger.info(
                "Import run=%s stopped dispatching: cancelled=%s timed_out=%s not_attempted=%d",
                context.run_id,
                cancelled,
                timed_out,
                not_attempted,
            )

        return ExecutionResult(
            batch_results=tuple(results[index] for index in sorted(results)),
            not_attempted_rows=not_attempted,
            cancelled=cancelled,
            timed_out=timed_out,
        )

    def _drain_after_timeout(
        self,
        in_flight: dict[Future[BatchResult], tuple[int, list[ImportRow]]],
        results: dict[int, BatchResult],
    ) -> None:
        done, not_done = wait(tuple(in_flight), timeout=self._grace_seconds)
        for future in done:
            batch_index, _batch = in_flight.pop(future)
            results[batch_index] = future.result()
        for future in not_done:
            batch_index, batch = in_flight.pop(future)
            logger.warning(
                "Batch %d still running after %.1fs grace period; %d row(s) recorded as unknown",
                batch_index,
                self._grace_seconds,
                len(batch),
            )
            results[batch_index] = _failed_batch(batch_index, batch, TIMEOUT_OUTCOME_MESSAGE)

    def _insert_batch(self, batch_index: int, batch: list[ImportRow], run_id: str) -> BatchResult:
        try:
            outcomes = self._store.insert_batch(batch, run_id=run_id)
        except Exception as exc:  # noqa: BLE001
            message = str(exc) or exc.__class__.__name__
            logger.warning(
                "Batch %d failed run=%s rows=%d: %s",
                batch_index,
                run_id,
                len(batch),
                message,
            )
            return _failed_batch(batch_index, batch, message)

        by_row = {outcome.row_number: outcome for outcome in outcomes}
        inserted = 0
        failures: list[RowFailure] = []
        for row in batch:
            outcome = by_row.get(row.row_number)
            if outcome is None:
                failures.append(RowFailure(row.row_number, row.customer_identity, MISSING_OUTCOME_MESSAGE))
            elif outcome.inserted:
                inserted += 1
            else:
                failures.append(RowFailure(row.row_number, row.customer_identity, outcome.error or "insert failed"))

        if failures:
            logger.warning("Batch %d run=%s inserted=%d failed=%d", batch_index, run_id, inserted, len(failures))
        else:
            logger.debug("Batch %d run=%s inserted=%d", batch_index, run_id, inserted)

        return BatchResult(
            batch_index=batch_index,
            attempted=len(batch),
            inserted=inserted,
            failed=len(failures),
            failures=tuple(failures),
        )


def _failed_batch(batch_index: int, batch: Sequence[ImportRow], message: str) -> BatchResult:
    return BatchResult(
        batch_index=batch_index,
        attempted=len(batch),
        inserted=0,
        failed=len(batch),
        failures=tuple(RowFailure(row.row_number, row.customer_identity, message) for row in batch),
        error=message,
    )
