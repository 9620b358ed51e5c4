"""
app/domain/order_import.py

Value types shared by the order import pipeline stages.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Union


class ImportMode:
    PREVIEW = "preview"
    EXECUTE = "execute"


class ImportStatus:
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    TIMED_OUT = "timed_out"
    MAPPING_FAILED = "mapping_failed"


class OutcomeKind:
    VALID = "valid"
    INVALID = "invalid"
    DUPLICATE = "duplicate"


@dataclass(frozen=True)
class RawRow:
    """
    One decoded spreadsheet row keyed by source header.
    """

    row_number: int
    values: dict[str, str | None]

    def get(self, header: str) -> str | None:
        return self.values.get(header)

    def is_blank(self) -> bool:
        return all(value is None or not value.strip() for value in self.values.values())


@dataclass(frozen=True)
class FieldMapping:
    """
    Resolved canonical-field to source-header mapping for one import.
    """

    canonical_to_source: dict[str, str]
    source_headers: tuple[str, ...]
    match_strategies: dict[str, str]
    unmapped_fields: frozenset[str] = frozenset()
    mapping_config_id: str | None = None

    def source_for(self, canonical_field: str) -> str | None:
        return self.canonical_to_source.get(canonical_field)


@dataclass(frozen=True)
class RowIssue:
    """
    One row-level validation error or warning.
    """

    row_number: int
    message: str
    column: str | None = None
    value: str | None = None

    def describe(self) -> str:
        if self.column:
            return f"Row {self.row_number}: {self.column}: {self.message}"
        return f"Row {self.row_number}: {self.message}"


@dataclass(frozen=True)
class LineItem:
    product_name: str
    quantity: int = 1
    unit_price: Decimal | None = None


@dataclass(frozen=True)
class ImportRow:
    """
    Canonical, typed order parsed from one spreadsheet row.
    """

    row_number: int
    customer_name: str | None
    phone_number: str | None
    order_date: date
    currency: str
    total_amount: Decimal
    status: str
    email: str | None = None
    facebook_handle: str | None = None
    payment_method: str | None = None
    notes: str | None = None
    shipping_address: str | None = None
    line_items: tuple[LineItem, ...] = ()
    warnings: tuple[RowIssue, ...] = ()

    @property
    def customer_identity(self) -> str:
        return self.customer_name or self.phone_number or ""


@dataclass(frozen=True)
class Fingerprint:
    """
    Derived duplicate-detection key; never persisted.
    """

    identity: str
    order_date: date
    total_amount: Decimal
    digest: str

    @property
    def phone_number(self) -> str | None:
        return self.identity if self.identity.startswith("+") else None

    @property
    def customer_name(self) -> str | None:
        if self.identity.startswith("name:"):
            return self.identity[len("name:"):]
        return None


@dataclass(frozen=True)
class ValidRow:
    row: ImportRow

    kind = OutcomeKind.VALID

    @property
    def row_number(self) -> int:
        return self.row.row_number


@dataclass(frozen=True)
class InvalidRow:
    row_number: int
    errors: tuple[RowIssue, ...]
    customer_identity: str = ""

    kind = OutcomeKind.INVALID

    @property
    def reasons(self) -> list[str]:
        return [issue.message for issue in self.errors]


@dataclass(frozen=True)
class DuplicateRow:
    row: ImportRow
    fingerprint: Fingerprint
    matched: str

    kind = OutcomeKind.DUPLICATE

    @property
    def row_number(self) -> int:
        return self.row.row_number


RowOutcome = Union[ValidRow, InvalidRow, DuplicateRow]


@dataclass(frozen=True)
class RowInsertOutcome:
    """
    Per-row result reported by an order store for one batch insert.
    """

    row_number: int
    inserted: bool
    error: str | None = None
    order_id: str | None = None


@dataclass(frozen=True)
class RowFailure:
    row_number: int
    customer_identity: str
    message: str


@dataclass(frozen=True)
class BatchResult:
    """
    Outcome of one store insert call.
    """

    batch_index: int
    attempted: int
    inserted: int
    failed: int
    failures: tuple[RowFailure, ...] = ()
    error: str | None = None


@dataclass(frozen=True)
class ImportErrorRecord:
    row_number: int
    customer_identity: str
    error: str
    stage: str


@dataclass(frozen=True)
class ImportReport:
    """
    Immutable end-of-run summary handed back to the caller.
    """

    mode: str
    status: str
    detected_headers: tuple[str, ...]
    field_mapping: dict[str, str]
    unmapped_fields: tuple[str, ...]
    total_rows: int
    valid_rows: int
    invalid_rows: int
    duplicate_rows: int
    inserted_rows: int = 0
    failed_insert_rows: int = 0
    not_attempted_rows: int = 0
    errors: tuple[ImportErrorRecord, ...] = ()
    warnings: tuple[str, ...] = ()
    errors_truncated: bool = False
    mapping_errors: tuple[str, ...] = ()
    preview: tuple[ImportRow, ...] = ()
    batch_results: tuple[BatchResult, ...] = field(default_factory=tuple)

    @property
    def total_processed(self) -> int:
        return self.total_rows - self.not_attempted_rows

    @property
    def failed_rows(self) -> int:
        return self.invalid_rows + self.failed_insert_rows

    @property
    def is_valid(self) -> bool:
        return self.status != ImportStatus.MAPPING_FAILED and self.valid_rows > 0

    @property
    def success(self) -> bool:
        return self.status == ImportStatus.COMPLETED
