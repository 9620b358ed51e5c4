from __future__ import annotations

from app.domain.order_import import (
    BatchResult,
    DuplicateRow,
    FieldMapping,
    ImportMode,
    ImportStatus,
    InvalidRow,
    RowFailure,
    RowIssue,
    ValidRow,
)
from app.services.batch_executor import ExecutionResult
from app.services.duplicate_detector import compute_fingerprint
from app.services.import_report import INSERT_STAGE, VALIDATION_STAGE, build_import_report, report_to_dict

MAPPING = FieldMapping(
    canonical_to_source={"customer_name": "Name", "order_date": "Date"},
    source_headers=("Name", "Date"),
    match_strategies={"customer_name": "synonym", "order_date": "exact"},
    unmapped_fields=frozenset({"total_amount", "email"}),
)


def _outcomes(make_row):
    first = make_row(2)
    warned = make_row(3, warnings=(RowIssue(row_number=3, column="status", message="Unknown status."),))
    return [
        ValidRow(first),
        ValidRow(warned),
        ValidRow(make_row(4)),
        InvalidRow(
            row_number=5,
            errors=(
                RowIssue(row_number=5, column="order_date", message="Required value is missing."),
                RowIssue(row_number=5, column="total_amount", message="amount must be non-negative"),
            ),
            customer_identity="Bad Row",
        ),
        DuplicateRow(row=make_row(6), fingerprint=compute_fingerprint(first), matched="row 2"),
    ]


class TestPreviewReport:
    def test_counts_add_up(self, make_row) -> None:
        report = build_import_report(
            mode=ImportMode.PREVIEW,
            status=ImportStatus.COMPLETED,
            detected_headers=["Name", "Date"],
            mapping=MAPPING,
            outcomes=_outcomes(make_row),
            preview_rows=2,
        )

        assert report.total_rows == 5
        assert report.valid_rows + report.invalid_rows + report.duplicate_rows == report.total_rows
        assert [row.row_number for row in report.preview] == [2, 3]
        assert report.unmapped_fields == ("email", "total_amount")
        assert report.is_valid is True

    def test_validation_errors_and_warnings(self, make_row) -> None:
        report = build_import_report(
            mode=ImportMode.PREVIEW,
            status=ImportStatus.COMPLETED,
            detected_headers=["Name", "Date"],
            mapping=MAPPING,
            outcomes=_outcomes(make_row),
        )

        assert len(report.errors) == 1
        error = report.errors[0]
        assert error.row_number == 5
        assert error.stage == VALIDATION_STAGE
        assert error.customer_identity == "Bad Row"
        assert error.error == "order_date: Required value is missing.; total_amount: amount must be non-negative"
        assert report.warnings == ("Row 3: status: Unknown status.", "Row 6: duplicate of row 2")

    def test_detail_lists_are_capped_but_counts_are_not(self, make_row) -> None:
        outcomes = [
            InvalidRow(row_number=number, errors=(RowIssue(row_number=number, message="bad"),))
            for number in range(2, 12)
        ]

        report = build_import_report(
            mode=ImportMode.PREVIEW,
            status=ImportStatus.COMPLETED,
            detected_headers=[],
            mapping=None,
            outcomes=outcomes,
            max_error_details=3,
        )

        assert report.invalid_rows == 10
        assert len(report.errors) == 3
        assert report.errors_truncated is True
        assert report.is_valid is False


class TestExecuteReport:
    def test_combines_execution_results(self, make_row) -> None:
        execution = ExecutionResult(
            batch_results=(
                BatchResult(
                    batch_index=0,
                    attempted=2,
                    inserted=1,
                    failed=1,
                    failures=(RowFailure(3, "Customer 3", "constraint violation"),),
                ),
            ),
            not_attempted_rows=1,
            cancelled=True,
            timed_out=False,
        )

        report = build_import_report(
            mode=ImportMode.EXECUTE,
            status=ImportStatus.CANCELLED,
            detected_headers=["Name", "Date"],
            mapping=MAPPING,
            outcomes=_outcomes(make_row),
            execution=execution,
            unread_rows=2,
        )

        assert report.total_rows == 7
        assert report.inserted_rows == 1
        assert report.failed_insert_rows == 1
        assert report.not_attempted_rows == 3
        assert (
            report.inserted_rows
            + report.failed_insert_rows
            + report.invalid_rows
            + report.duplicate_rows
            + report.not_attempted_rows
        ) == report.total_rows
        assert report.total_processed == 4
        assert [(error.row_number, error.stage) for error in report.errors] == [
            (3, INSERT_STAGE),
            (5, VALIDATION_STAGE),
        ]
        assert report.success is False

    def test_report_to_dict_is_json_ready(self, make_row) -> None:
        report = build_import_report(
            mode=ImportMode.PREVIEW,
            status=ImportStatus.COMPLETED,
            detected_headers=["Name", "Date"],
            mapping=MAPPING,
            outcomes=_outcomes(make_row),
        )

        payload = report_to_dict(report)

        assert payload["success"] is True
        assert payload["total_rows"] == 5
        assert payload["preview"][0]["order_date"] == "2024-03-01"
        assert payload["preview"][0]["total_amount"] == "150.00"
        assert payload["errors"][0]["stage"] == VALIDATION_STAGE
