"""
app/services/order_import_service.py

Service layer for bulk order import orchestration.

Both entry points share one validation path:

    decode -> resolve header mapping -> transform rows -> detect duplicates

``validate`` stops there and reports a preview. ``execute`` continues into the
batch executor. File-level problems (``FormatError``, ``MappingError`` during
execute) are raised; everything row-level ends up in the returned report.
"""

from __future__ import annotations

import csv
import io
import logging
from functools import lru_cache
from typing import Any, Mapping

from openpyxl import Workbook

from app.config import OrderImportSettings, get_order_import_settings
from app.decoders.tabular_decoder import DecodedTable, TabularDecoder, TabularFormat
from app.domain.import_context import ImportContext, ImportPhase
from app.domain.order_import import (
    FieldMapping,
    ImportMode,
    ImportReport,
    ImportStatus,
    InvalidRow,
    RowOutcome,
    ValidRow,
)
from app.mappers.header_mapper import HeaderMapper
from app.repositories.order_store import OrderStore
from app.services.batch_executor import BatchExecutor, ExecutionResult
from app.services.duplicate_detector import DuplicateDetector
from app.services.import_report import build_import_report
from app.transformers.row_transformer import OrderRowTransformer
from app.validators.mapping_validator import MappingError

logger = logging.getLogger(__name__)

TEMPLATE_HEADERS: tuple[str, ...] = (
    "Customer Name",
    "Phone Number",
    "Email",
    "Order Date",
    "Total Amount",
    "Currency",
    "Status",
    "Payment Method",
    "Items",
    "Shipping Address",
    "Notes",
)

TEMPLATE_SAMPLE_ROWS: tuple[tuple[str, ...], ...] = (
    (
        "Jane Doe",
        "+60123456789",
        "jane@example.com",
        "01/03/2024",
        "150.00",
        "MYR",
        "completed",
        "Bank Transfer",
        "Serum x2; Cleanser",
        "12 Jalan Ampang, Kuala Lumpur",
        "First order",
    ),
    (
        "Ahmad Ali",
        "0198765432",
        "",
        "15/03/2024",
        "89.90",
        "MYR",
        "pending",
        "COD",
        "Toner (1)",
        "",
        "",
    ),
)

TEMPLATE_BASENAME = "order_import_template"

_MEDIA_TYPES = {
    TabularFormat.CSV: "text/csv",
    TabularFormat.XLSX: "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class OrderImportService:
    """
    Coordinates decoding, mapping, row validation, duplicate detection and
    batch insertion for one uploaded order file.
    """

    def __init__(
        self,
        *,
        settings: OrderImportSettings,
        decoder: TabularDecoder | None = None,
        mapper: HeaderMapper | None = None,
        transformer: OrderRowTransformer | None = None,
    ) -> None:
        self._settings = settings
        self._decoder = decoder or TabularDecoder()
        self._mapper = mapper or HeaderMapper(fuzzy_threshold=settings.fuzzy_threshold)
        self._transformer = transformer or OrderRowTransformer(
            default_currency=settings.default_currency,
            default_country_code=settings.default_country_code,
            day_first=settings.day_first,
        )

    @property
    def settings(self) -> OrderImportSettings:
        return self._settings

    def validate(
        self,
        *,
        content: bytes,
        filename: str | None = None,
        store: OrderStore | None = None,
        mapping_config: Any | None = None,
        manual_mapping: Mapping[str, str] | None = None,
        context: ImportContext | None = None,
    ) -> ImportReport:
        """
        Dry run: report what an execute would do without writing anything.

        A mapping failure is reported (status ``mapping_failed``) rather than
        raised. ``store`` is only read, to flag rows that are already imported.
        """

        context = context or ImportContext.create(timeout_seconds=self._settings.timeout_seconds)
        context.transition(ImportPhase.VALIDATING)
        logger.info("Order import preview started run=%s file=%r", context.run_id, filename)

        table = self._decoder.decode(content, filename=filename)
        try:
            mapping = self._resolve_mapping(table, manual_mapping=manual_mapping, mapping_config=mapping_config)
        except MappingError as exc:
            context.transition(ImportPhase.DONE)
            logger.info("Order import preview run=%s mapping failed: %s", context.run_id, exc.message)
            return self._mapping_failed_report(table, exc)

        outcomes, unread_rows = self._classify_rows(
            table,
            mapping=mapping,
            context=context,
            detector=DuplicateDetector(store),
        )
        context.transition(ImportPhase.PREVIEWING)

        report = build_import_report(
            mode=ImportMode.PREVIEW,
            status=self._final_status(context, unread_rows=unread_rows),
            detected_headers=table.headers,
            mapping=mapping,
            outcomes=outcomes,
            unread_rows=unread_rows,
            max_error_details=self._settings.max_error_details,
            preview_rows=self._settings.preview_rows,
        )
        context.transition(ImportPhase.DONE)
        self._log_summary(context, report)
        return report

    def execute(
        self,
        *,
        content: bytes,
        filename: str | None = None,
        store: OrderStore,
        skip_duplicates: bool = True,
        batch_size: int | None = None,
        mapping_config: Any | None = None,
        manual_mapping: Mapping[str, str] | None = None,
        context: ImportContext | None = None,
    ) -> ImportReport:
        """
        Validate every row, then insert the valid ones in batches.

        Raises ``FormatError`` or ``MappingError`` before any row is written.
        """

        context = context or ImportContext.create(timeout_seconds=self._settings.timeout_seconds)
        context.transition(ImportPhase.VALIDATING)
        effective_batch_size = self._settings.clamp_batch_size(batch_size)
        logger.info(
            "Order import started run=%s file=%r batch_size=%d skip_duplicates=%s",
            context.run_id,
            filename,
            effective_batch_size,
            skip_duplicates,
        )

        table = self._decoder.decode(content, filename=filename)
        mapping = self._resolve_mapping(table, manual_mapping=manual_mapping, mapping_config=mapping_config)

        outcomes, unread_rows = self._classify_rows(
            table,
            mapping=mapping,
            context=context,
            detector=DuplicateDetector(store) if skip_duplicates else None,
        )

        context.transition(ImportPhase.INSERTING)
        executor = BatchExecutor(
            store,
            batch_size=effective_batch_size,
            max_concurrency=self._settings.max_concurrency,
            grace_seconds=self._settings.batch_grace_seconds,
        )
        execution = executor.execute(
            [outcome.row for outcome in outcomes if isinstance(outcome, ValidRow)],
            context=context,
        )

        report = build_import_report(
            mode=ImportMode.EXECUTE,
            status=self._final_status(context, unread_rows=unread_rows, execution=execution),
            detected_headers=table.headers,
            mapping=mapping,
            outcomes=outcomes,
            execution=execution,
            unread_rows=unread_rows,
            max_error_details=self._settings.max_error_details,
            preview_rows=self._settings.preview_rows,
        )
        context.transition(ImportPhase.DONE)
        self._log_summary(context, report)
        return report

    def build_template(self, fmt: str = TabularFormat.CSV) -> tuple[bytes, str, str]:
        """
        Return ``(content, filename, media_type)`` for the example import file.
        """

        normalized = (fmt or TabularFormat.CSV).strip().lower()
        if normalized not in _MEDIA_TYPES:
            raise ValueError(f"Unsupported template format {fmt!r}. Use 'csv' or 'xlsx'.")

        if normalized == TabularFormat.XLSX:
            workbook = Workbook()
            sheet = workbook.active
            sheet.title = "Orders"
            sheet.append(list(TEMPLATE_HEADERS))
            for row in TEMPLATE_SAMPLE_ROWS:
                sheet.append(list(row))
            buffer = io.BytesIO()
            workbook.save(buffer)
            content = buffer.getvalue()
        else:
            text_buffer = io.StringIO()
            writer = csv.writer(text_buffer, lineterminator="\n")
            writer.writerow(TEMPLATE_HEADERS)
            writer.writerows(TEMPLATE_SAMPLE_ROWS)
            content = text_buffer.getvalue().encode("utf-8")

        return content, f"{TEMPLATE_BASENAME}.{normalized}", _MEDIA_TYPES[normalized]

    # ------------------------------------------------------------------
    # Pipeline internals
    # ------------------------------------------------------------------

    def _resolve_mapping(
        self,
        table: DecodedTable,
        *,
        manual_mapping: Mapping[str, str] | None,
        mapping_config: Any | None,
    ) -> FieldMapping:
        return self._mapper.resolve_mapping(
            table.headers,
            manual_overrides=manual_mapping,
            mapping_config=mapping_config,
        )

    def _classify_rows(
        self,
        table: DecodedTable,
        *,
        mapping: FieldMapping,
        context: ImportContext,
        detector: DuplicateDetector | None,
    ) -> tuple[list[RowOutcome], int]:
        """
        Transform and de-duplicate rows in file order.

        Returns the outcomes and the number of rows left unread when the run
        was cancelled or timed out part way through.
        """

        outcomes: list[RowOutcome] = []
        rows = table.iter_rows()
        for raw_row in rows:
            if context.should_stop():
                unread_rows = 1 + rows.count_remaining()
                logger.warning(
                    "Order import run=%s stopped during validation at row=%s; %d row(s) unread",
                    context.run_id,
                    raw_row.row_number,
                    unread_rows,
                )
                return outcomes, unread_rows

            outcome = self._transformer.transform_values(
                values=self._mapper.map_row(raw_row=raw_row, mapping=mapping),
                row_number=raw_row.row_number,
            )
            if detector is not None:
                outcome = detector.check(outcome)
            if isinstance(outcome, InvalidRow):
                self._record_invalid(outcome)
            outcomes.append(outcome)
        return outcomes, 0

    def _record_invalid(self, outcome: InvalidRow) -> None:
        if not self._settings.log_validation_errors:
            return
        for issue in outcome.errors:
            logger.warning(
                "Order validation error row=%s column=%s message=%s value=%r",
                issue.row_number,
                issue.column,
                issue.message,
                issue.value,
            )

    def _mapping_failed_report(self, table: DecodedTable, exc: MappingError) -> ImportReport:
        return ImportReport(
            mode=ImportMode.PREVIEW,
            status=ImportStatus.MAPPING_FAILED,
            detected_headers=table.headers,
            field_mapping=dict(exc.partial_mapping),
            unmapped_fields=tuple(exc.missing_fields),
            total_rows=0,
            valid_rows=0,
            invalid_rows=0,
            duplicate_rows=0,
            mapping_errors=tuple(detail.message for detail in exc.errors),
        )

    @staticmethod
    def _final_status(
        context: ImportContext,
        *,
        unread_rows: int,
        execution: ExecutionResult | None = None,
    ) -> str:
        stopped_early = unread_rows > 0
        if execution is not None:
            stopped_early = stopped_early or execution.not_attempted_rows > 0 or execution.timed_out
        if not stopped_early:
            return ImportStatus.COMPLETED
        if context.cancelled:
            return ImportStatus.CANCELLED
        return ImportStatus.TIMED_OUT

    @staticmethod
    def _log_summary(context: ImportContext, report: ImportReport) -> None:
        logger.info(
            "Order import %s finished run=%s status=%s total=%d valid=%d invalid=%d "
            "duplicate=%d inserted=%d failed_insert=%d not_attempted=%d",
            report.mode,
            context.run_id,
            report.status,
            report.total_rows,
            report.valid_rows,
            report.invalid_rows,
            report.duplicate_rows,
            report.inserted_rows,
            report.failed_insert_rows,
            report.not_attempted_rows,
        )


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


@lru_cache(maxsize=1)
def get_order_import_service() -> OrderImportService:
    """
    Build and cache the import service with env-driven settings.
    """

    return OrderImportService(settings=get_order_import_settings())
