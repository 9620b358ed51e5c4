"""
app/services/duplicate_detector.py

Fingerprint-based duplicate detection for imported orders.

A fingerprint is the sha256 of ``identity|order_date|total_amount`` where the
identity is the normalized phone number, or the lowercased customer name when
the row has no phone. The first row in a run to claim a fingerprint wins; later
rows with the same key, and rows matching an order already in the store, are
reported as duplicates.
"""

from __future__ import annotations

import hashlib
import logging
import threading

from app.domain.order_import import (
    DuplicateRow,
    Fingerprint,
    ImportRow,
    InvalidRow,
    RowIssue,
    RowOutcome,
    ValidRow,
)
from app.repositories.order_store import OrderStore
from app.transformers.parsers import CENTS, collapse_whitespace

logger = logging.getLogger(__name__)

EXISTING_ORDER_MATCH = "existing order"


def compute_fingerprint(row: ImportRow) -> Fingerprint:
    if row.phone_number:
        identity = row.phone_number
    else:
        identity = "name:" + collapse_whitespace(row.customer_name or "").lower()
    amount = row.total_amount.quantize(CENTS)
    payload = f"{identity}|{row.order_date.isoformat()}|{amount}"
    return Fingerprint(
        identity=identity,
        order_date=row.order_date,
        total_amount=amount,
        digest=hashlib.sha256(payload.encode("utf-8")).hexdigest(),
    )


class DuplicateDetector:
    """
    Classifies valid rows as new or duplicate for one import run.

    The in-run fingerprint set is the only state shared between threads and is
    guarded by a lock. Create one detector per run.
    """

    def __init__(self, store: OrderStore | None = None) -> None:
        self._store = store
        self._seen: dict[str, int] = {}
        self._lock = threading.Lock()

    def check(self, outcome: RowOutcome) -> RowOutcome:
        """
        Return ``outcome`` unchanged unless it is a valid row that duplicates
        an earlier row or a stored order.

        A failed store lookup turns the row invalid instead of raising.
        """

        if not isinstance(outcome, ValidRow):
            return outcome

        row = outcome.row
        fingerprint = compute_fingerprint(row)

        with self._lock:
            first_row = self._seen.get(fingerprint.digest)
            if first_row is None:
                self._seen[fingerprint.digest] = row.row_number
        if first_row is not None:
            return DuplicateRow(row=row, fingerprint=fingerprint, matched=f"row {first_row}")

        if self._store is None:
            return outcome

        try:
            exists = self._store.exists_by_fingerprint(fingerprint)
        except Exception as exc:  # noqa: BLE001
            with self._lock:
                if self._seen.get(fingerprint.digest) == row.row_number:
                    del self._seen[fingerprint.digest]
            logger.warning(
                "Duplicate lookup failed row=%s identity=%r: %s",
                row.row_number,
                row.customer_identity,
                exc,
            )
            return InvalidRow(
                row_number=row.row_number,
                errors=(RowIssue(row_number=row.row_number, message=f"duplicate check failed: {exc}"),),
                customer_identity=row.customer_identity,
            )

        if exists:
            return DuplicateRow(row=row, fingerprint=fingerprint, matched=EXISTING_ORDER_MATCH)
        return outcome

    @property
    def seen_count(self) -> int:
        with self._lock:
            return len(self._seen)
