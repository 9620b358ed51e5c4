"""
app/services/import_report.py

Aggregation of row outcomes and batch results into an ``ImportReport``.
"""

from __future__ import annotations

from typing import Any, Sequence

from app.domain.order_import import (
    DuplicateRow,
    FieldMapping,
    ImportErrorRecord,
    ImportReport,
    InvalidRow,
    RowIssue,
    RowOutcome,
    ValidRow,
)
from app.services.batch_executor import ExecutionResult

VALIDATION_STAGE = "validation"
INSERT_STAGE = "insert"


def build_import_report(
    *,
    mode: str,
    status: str,
    detected_headers: Sequence[str],
    mapping: FieldMapping | None,
    outcomes: Sequence[RowOutcome],
    execution: ExecutionResult | None = None,
    unread_rows: int = 0,
    mapping_errors: Sequence[str] = (),
    max_error_details: int = 100,
    preview_rows: int = 5,
) -> ImportReport:
    """
    Build the end-of-run report. Pure: same inputs, same report.

    ``unread_rows`` counts rows the run stopped before transforming; they are
    reported as not attempted together with rows the executor never sent.
    Counts are exact; only the ``errors`` and ``warnings`` detail lists are capped.
    """

    cap = max(1, max_error_details)
    valid = [outcome for outcome in outcomes if isinstance(outcome, ValidRow)]
    invalid = [outcome for outcome in outcomes if isinstance(outcome, InvalidRow)]
    duplicates = [outcome for outcome in outcomes if isinstance(outcome, DuplicateRow)]

    errors: list[ImportErrorRecord] = [
        ImportErrorRecord(
            row_number=outcome.row_number,
            customer_identity=outcome.customer_identity,
            error=_join_issues(outcome.errors),
            stage=VALIDATION_STAGE,
        )
        for outcome in invalid
    ]
    if execution is not None:
        errors.extend(
            ImportErrorRecord(
                row_number=failure.row_number,
                customer_identity=failure.customer_identity,
                error=failure.message,
                stage=INSERT_STAGE,
            )
            for failure in execution.failures
        )
    errors.sort(key=lambda record: (record.row_number, record.stage))

    warnings: list[str] = []
    for outcome in outcomes:
        if isinstance(outcome, ValidRow):
            warnings.extend(issue.describe() for issue in outcome.row.warnings)
        elif isinstance(outcome, DuplicateRow):
            warnings.append(f"Row {outcome.row_number}: duplicate of {outcome.matched}")

    not_attempted = max(0, unread_rows)
    if execution is not None:
        not_attempted += execution.not_attempted_rows

    return ImportReport(
        mode=mode,
        status=status,
        detected_headers=tuple(detected_headers),
        field_mapping=dict(mapping.canonical_to_source) if mapping is not None else {},
        unmapped_fields=tuple(sorted(mapping.unmapped_fields)) if mapping is not None else (),
        total_rows=len(outcomes) + max(0, unread_rows),
        valid_rows=len(valid),
        invalid_rows=len(invalid),
        duplicate_rows=len(duplicates),
        inserted_rows=execution.inserted_rows if execution is not None else 0,
        failed_insert_rows=execution.failed_rows if execution is not None else 0,
        not_attempted_rows=not_attempted,
        errors=tuple(errors[:cap]),
        warnings=tuple(warnings[:cap]),
        errors_truncated=len(errors) > cap,
        mapping_errors=tuple(mapping_errors),
        preview=tuple(outcome.row for outcome in valid[: max(0, preview_rows)]),
        batch_results=execution.batch_results if execution is not None else (),
    )


def _join_issues(issues: Sequence[RowIssue]) -> str:
    return "; ".join(f"{issue.column}: {issue.message}" if issue.column else issue.message for issue in issues)


def report_to_dict(report: ImportReport) -> dict[str, Any]:
    """
    JSON-ready view of a report, including derived totals.
    """

    return {
        "mode": report.mode,
        "status": report.status,
        "success": report.success,
        "detected_headers": list(report.detected_headers),
        "field_mapping": dict(report.field_mapping),
        "unmapped_fields": list(report.unmapped_fields),
        "total_rows": report.total_rows,
        "total_processed": report.total_processed,
        "valid_rows": report.valid_rows,
        "invalid_rows": report.invalid_rows,
        "duplicate_rows": report.duplicate_rows,
        "inserted_rows": report.inserted_rows,
        "failed_insert_rows": report.failed_insert_rows,
        "not_attempted_rows": report.not_attempted_rows,
        "errors_truncated": report.errors_truncated,
        "mapping_errors": list(report.mapping_errors),
        "errors": [
            {
                "row_number": error.row_number,
                "customer_identity": error.customer_identity,
                "error": error.error,
                "stage": error.stage,
            }
            for error in report.errors
        ],
        "warnings": list(report.warnings),
        "preview": [
            {
                "row_number": row.row_number,
                "customer_name": row.customer_name,
                "phone_number": row.phone_number,
                "order_date": row.order_date.isoformat(),
                "total_amount": str(row.total_amount),
                "currency": row.currency,
                "status": row.status,
                "items": [
                    {"product_name": item.product_name, "quantity": item.quantity}
                    for item in row.line_items
                ],
            }
            for row in report.preview
        ],
    }
