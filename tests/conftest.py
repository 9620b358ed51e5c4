"""
tests/conftest.py

Shared fixtures: an in-memory order store and an ``ImportRow`` builder.
"""

from __future__ import annotations

import threading
import uuid
from datetime import date
from decimal import Decimal
from typing import Callable, Iterable, Sequence

import pytest

from app.domain.errors import StoreError
from app.domain.order_import import Fingerprint, ImportRow, RowInsertOutcome
from app.services.duplicate_detector import compute_fingerprint


class InMemoryOrderStore:
    """
    Thread-safe ``OrderStore`` double.

    ``fail_rows``: any batch containing one of these row numbers raises.
    ``reject_rows``: these rows are reported as failed inserts.
    ``drop_rows``: these rows get no outcome at all.
    ``on_insert(call_number, rows)`` runs before each batch is stored.
    """

    def __init__(
        self,
        *,
        fail_rows: Iterable[int] = (),
        reject_rows: Iterable[int] = (),
        drop_rows: Iterable[int] = (),
        on_insert: Callable[[int, Sequence[ImportRow]], None] | None = None,
        lookup_error: Exception | None = None,
    ) -> None:
        self.fail_rows = set(fail_rows)
        self.reject_rows = set(reject_rows)
        self.drop_rows = set(drop_rows)
        self.on_insert = on_insert
        self.lookup_error = lookup_error
        self.rows: list[ImportRow] = []
        self.calls = 0
        self.run_ids: set[str | None] = set()
        self._digests: set[str] = set()
        self._lock = threading.Lock()

    def insert_batch(self, rows: Sequence[ImportRow], *, run_id: str | None = None) -> list[RowInsertOutcome]:
        with self._lock:
            self.calls += 1
            call_number = self.calls
            self.run_ids.add(run_id)

        if self.on_insert is not None:
            self.on_insert(call_number, rows)
        if any(row.row_number in self.fail_rows for row in rows):
            raise StoreError("connection reset")

        outcomes: list[RowInsertOutcome] = []
        with self._lock:
            for row in rows:
                if row.row_number in self.drop_rows:
                    continue
                if row.row_number in self.reject_rows:
                    outcomes.append(
                        RowInsertOutcome(row_number=row.row_number, inserted=False, error="constraint violation")
                    )
                    continue
                self.rows.append(row)
                self._digests.add(compute_fingerprint(row).digest)
                outcomes.append(
                    RowInsertOutcome(row_number=row.row_number, inserted=True, order_id=uuid.uuid4().hex)
                )
        return outcomes

    def exists_by_fingerprint(self, fingerprint: Fingerprint) -> bool:
        if self.lookup_error is not None:
            raise self.lookup_error
        with self._lock:
            return fingerprint.digest in self._digests


@pytest.fixture()
def store_factory() -> type[InMemoryOrderStore]:
    return InMemoryOrderStore


@pytest.fixture()
def order_store() -> InMemoryOrderStore:
    return InMemoryOrderStore()


@pytest.fixture()
def make_row() -> Callable[..., ImportRow]:
    """
    Build a valid ``ImportRow``; keyword arguments override the defaults.
    """

    def _make_row(row_number: int = 2, **overrides: object) -> ImportRow:
        values: dict[str, object] = {
            "row_number": row_number,
            "customer_name": f"Customer {row_number}",
            "phone_number": f"+6012{row_number:07d}",
            "order_date": date(2024, 3, 1),
            "currency": "MYR",
            "total_amount": Decimal("150.00"),
            "status": "completed",
        }
        values.update(overrides)
        return ImportRow(**values)  # type: ignore[arg-type]

    return _make_row
