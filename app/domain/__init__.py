"""
app/domain package marker.
"""

from app.domain.errors import FormatError, OrderImportError, StoreError
from app.domain.import_context import ImportContext, ImportPhase
from app.domain.order_import import (
    BatchResult,
    DuplicateRow,
    FieldMapping,
    Fingerprint,
    ImportErrorRecord,
    ImportMode,
    ImportReport,
    ImportRow,
    ImportStatus,
    InvalidRow,
    LineItem,
    RawRow,
    RowFailure,
    RowInsertOutcome,
    RowIssue,
    RowOutcome,
    ValidRow,
)

__all__ = [
    "BatchResult",
    "DuplicateRow",
    "FieldMapping",
    "Fingerprint",
    "FormatError",
    "ImportContext",
    "ImportErrorRecord",
    "ImportMode",
    "ImportPhase",
    "ImportReport",
    "ImportRow",
    "ImportStatus",
    "InvalidRow",
    "LineItem",
    "OrderImportError",
    "RawRow",
    "RowFailure",
    "RowInsertOutcome",
    "RowIssue",
    "RowOutcome",
    "StoreError",
    "ValidRow",
]
