"""
tests/test_batch_executor.py

Pytest unit tests for BatchExecutor.

All tests use the in-memory store from conftest; no database is involved.

Coverage
--------
- Partial batch failure isolation
- Rows without a reported outcome
- Cancellation between batches
- Timeout with a batch that never returns
- Concurrency bound
"""

from __future__ import annotations

import threading
import time

import pytest

from app.domain.import_context import ImportContext
from app.services.batch_executor import (
    MISSING_OUTCOME_MESSAGE,
    TIMEOUT_OUTCOME_MESSAGE,
    BatchExecutor,
)


@pytest.fixture()
def rows(make_row):
    """Five valid rows numbered 2..6, as if read from a file with a header."""
    return [make_row(number) for number in range(2, 7)]


class TestBatchFailures:
    def test_failed_batch_only_fails_its_own_rows(self, rows, store_factory) -> None:
        store = store_factory(fail_rows={4})
        executor = BatchExecutor(store, batch_size=2, max_concurrency=2)

        result = executor.execute(rows, context=ImportContext.create())

        assert result.inserted_rows == 3
        assert result.failed_rows == 2
        assert [failure.row_number for failure in result.failures] == [4, 5]
        assert {failure.message for failure in result.failures} == {"connection reset"}
        assert [batch.batch_index for batch in result.batch_results] == [0, 1, 2]
        assert result.batch_results[1].error == "connection reset"
        assert result.not_attempted_rows == 0
        assert not result.cancelled and not result.timed_out

    def test_rejected_and_missing_rows_are_failures(self, rows, store_factory) -> None:
        store = store_factory(reject_rows={2}, drop_rows={3})
        executor = BatchExecutor(store, batch_size=5)

        result = executor.execute(rows, context=ImportContext.create())

        assert result.inserted_rows == 3
        messages = {failure.row_number: failure.message for failure in result.failures}
        assert messages == {2: "constraint violation", 3: MISSING_OUTCOME_MESSAGE}

    def test_every_batch_is_tagged_with_the_run_id(self, rows, order_store) -> None:
        context = ImportContext.create()

        BatchExecutor(order_store, batch_size=2).execute(rows, context=context)

        assert order_store.run_ids == {context.run_id}

    def test_no_rows_means_no_batches(self, order_store) -> None:
        result = BatchExecutor(order_store).execute([], context=ImportContext.create())

        assert result.batch_results == ()
        assert order_store.calls == 0


class TestStopping:
    def test_cancel_after_two_batches(self, make_row, store_factory) -> None:
        context = ImportContext.create()

        def cancel_on_second_call(call_number, _rows) -> None:
            if call_number == 2:
                context.cancel()

        store = store_factory(on_insert=cancel_on_second_call)
        rows = [make_row(number) for number in range(2, 12)]
        executor = BatchExecutor(store, batch_size=2, max_concurrency=1)

        result = executor.execute(rows, context=context)

        assert [batch.batch_index for batch in result.batch_results] == [0, 1]
        assert result.inserted_rows == 4
        assert result.not_attempted_rows == 6
        assert result.cancelled is True
        assert result.timed_out is False
        assert store.calls == 2

    def test_cancelled_before_start_attempts_nothing(self, rows, order_store) -> None:
        context = ImportContext.create()
        context.cancel()

        result = BatchExecutor(order_store, batch_size=2).execute(rows, context=context)

        assert result.batch_results == ()
        assert result.not_attempted_rows == 5
        assert order_store.calls == 0

    def test_hung_batch_is_reported_after_grace_period(self, rows, store_factory) -> None:
        release = threading.Event()
        store = store_factory(on_insert=lambda _call, _rows: release.wait(5))
        executor = BatchExecutor(store, batch_size=3, max_concurrency=1, grace_seconds=0.1, poll_interval=0.01)
        try:
            result = executor.execute(rows, context=ImportContext.create(timeout_seconds=0.2))
        finally:
            release.set()

        assert result.timed_out is True
        assert result.batch_results[0].error == TIMEOUT_OUTCOME_MESSAGE
        assert result.failed_rows == 3
        assert result.not_attempted_rows == 2


def test_in_flight_batches_never_exceed_max_concurrency(make_row, store_factory) -> None:
    lock = threading.Lock()
    state = {"active": 0, "peak": 0}

    def track(_call, _rows) -> None:
        with lock:
            state["active"] += 1
            state["peak"] = max(state["peak"], state["active"])
        time.sleep(0.02)
        with lock:
            state["active"] -= 1

    store = store_factory(on_insert=track)
    rows = [make_row(number) for number in range(2, 14)]

    result = BatchExecutor(store, batch_size=2, max_concurrency=2).execute(rows, context=ImportContext.create())

    assert result.inserted_rows == 12
    assert 1 <= state["peak"] <= 2
