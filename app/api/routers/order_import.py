"""
app/api/routers/order_import.py

Bulk order import HTTP endpoints.
"""

from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, Depends, Form, HTTPException, Query, Request, UploadFile, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import Response
from sqlalchemy.orm import Session

from app.api.dependencies import get_import_upload, get_order_store, read_upload
from app.domain.errors import FormatError
from app.domain.import_context import ImportContext
from app.domain.order_import import ImportReport, ImportRow
from app.repositories.mapping_config_repository import MappingConfigRepository
from app.repositories.order_store import OrderStore
from app.schemas.order_import import (
    ExecuteDataResponse,
    ExecuteImportResponse,
    ImportErrorResponse,
    LineItemResponse,
    PreviewRowResponse,
    ValidateDataResponse,
    ValidateImportResponse,
    ValidationSummaryResponse,
)
from app.services.order_import_service import OrderImportService, get_order_import_service
from app.validators.mapping_validator import MappingError
from db.models.mapping_config import MappingConfig
from db.session import get_db

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/import", tags=["order-import"])

_DISCONNECT_POLL_SECONDS = 0.5


@router.post("/validate", response_model=ValidateImportResponse)
async def validate_import(
    request: Request,
    file: UploadFile = Depends(get_import_upload),
    client_name: str | None = Query(default=None, description="Optional client name to scope mapping config"),
    mapping_config_name: str | None = Query(default=None, description="Optional explicit mapping config name"),
    timeout_seconds: float | None = Query(default=None, gt=0, description="Override the run timeout"),
    db: Session = Depends(get_db),
    store: OrderStore = Depends(get_order_store),
    import_service: OrderImportService = Depends(get_order_import_service),
) -> ValidateImportResponse:
    """
    Dry-run an order file: mapping, per-row validation and a preview. Nothing is written.
    """

    try:
        content = await read_upload(file, max_bytes=import_service.settings.max_file_bytes)
    finally:
        await file.close()

    mapping_config = await run_in_threadpool(_load_mapping_config, db, client_name, mapping_config_name)
    context = ImportContext.create(timeout_seconds=timeout_seconds or import_service.settings.timeout_seconds)

    try:
        report = await _run_cancellable(
            request,
            context,
            import_service.validate,
            content=content,
            filename=file.filename,
            store=store,
            mapping_config=mapping_config,
            context=context,
        )
    except FormatError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc

    return ValidateImportResponse(success=True, data=_to_validate_data(report))


@router.post("/execute", response_model=ExecuteImportResponse)
async def execute_import(
    request: Request,
    file: UploadFile = Depends(get_import_upload),
    skip_duplicates: bool = Form(default=True, alias="skipDuplicates"),
    batch_size: int | None = Form(default=None, alias="batchSize"),
    client_name: str | None = Query(default=None, description="Optional client name to scope mapping config"),
    mapping_config_name: str | None = Query(default=None, description="Optional explicit mapping config name"),
    timeout_seconds: float | None = Query(default=None, gt=0, description="Override the run timeout"),
    db: Session = Depends(get_db),
    store: OrderStore = Depends(get_order_store),
    import_service: OrderImportService = Depends(get_order_import_service),
) -> ExecuteImportResponse:
    """
    Import an order file. Invalid and duplicate rows are skipped and reported.
    """

    try:
        content = await read_upload(file, max_bytes=import_service.settings.max_file_bytes)
    finally:
        await file.close()

    mapping_config = await run_in_threadpool(_load_mapping_config, db, client_name, mapping_config_name)
    context = ImportContext.create(timeout_seconds=timeout_seconds or import_service.settings.timeout_seconds)

    try:
        report = await _run_cancellable(
            request,
            context,
            import_service.execute,
            content=content,
            filename=file.filename,
            store=store,
            skip_duplicates=skip_duplicates,
            batch_size=batch_size,
            mapping_config=mapping_config,
            context=context,
        )
    except MappingError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=exc.to_dict(),
        ) from exc
    except FormatError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc

    return ExecuteImportResponse(success=True, data=_to_execute_data(report))


@router.get("/template")
def download_template(
    file_format: str = Query(default="csv", alias="format", pattern="^(csv|xlsx)$", description="Template file format"),
    import_service: OrderImportService = Depends(get_order_import_service),
) -> Response:
    """
    Download an example order file with the recommended headers.
    """

    content, filename, media_type = import_service.build_template(file_format)
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _load_mapping_config(
    db: Session,
    client_name: str | None,
    mapping_config_name: str | None,
) -> MappingConfig | None:
    return MappingConfigRepository(db).get_active(name=mapping_config_name, client_name=client_name)


async def _run_cancellable(request: Request, context: ImportContext, func, /, **kwargs) -> ImportReport:
    """
    Run a blocking import call in the threadpool and cancel it if the client goes away.
    """

    watcher = asyncio.create_task(_cancel_on_disconnect(request, context))
    try:
        return await run_in_threadpool(func, **kwargs)
    finally:
        watcher.cancel()


async def _cancel_on_disconnect(request: Request, context: ImportContext) -> None:
    while not context.should_stop():
        if await request.is_disconnected():
            logger.warning("Client disconnected; cancelling import run=%s", context.run_id)
            context.cancel()
            return
        await asyncio.sleep(_DISCONNECT_POLL_SECONDS)


def _to_preview_row(row: ImportRow) -> PreviewRowResponse:
    return PreviewRowResponse(
        row_number=row.row_number,
        customer_name=row.customer_name,
        phone_number=row.phone_number,
        email=row.email,
        facebook_handle=row.facebook_handle,
        order_date=row.order_date,
        total_amount=row.total_amount,
        currency=row.currency,
        status=row.status,
        payment_method=row.payment_method,
        shipping_address=row.shipping_address,
        notes=row.notes,
        items=[
            LineItemResponse(product_name=item.product_name, quantity=item.quantity, unit_price=item.unit_price)
            for item in row.line_items
        ],
    )


def _to_validate_data(report: ImportReport) -> ValidateDataResponse:
    errors = [*report.mapping_errors]
    errors.extend(f"Row {error.row_number}: {error.error}" for error in report.errors)
    return ValidateDataResponse(
        detected_headers=list(report.detected_headers),
        field_mapping=dict(report.field_mapping),
        unmapped_fields=list(report.unmapped_fields),
        validation=ValidationSummaryResponse(
            is_valid=report.is_valid,
            errors=errors,
            warnings=list(report.warnings),
            total_rows=report.total_rows,
            valid_rows=report.valid_rows,
            invalid_rows=report.invalid_rows,
            duplicate_rows=report.duplicate_rows,
            errors_truncated=report.errors_truncated,
            status=report.status,
        ),
        preview=[_to_preview_row(row) for row in report.preview],
    )


def _to_execute_data(report: ImportReport) -> ExecuteDataResponse:
    return ExecuteDataResponse(
        success=report.success,
        status=report.status,
        total_rows=report.total_rows,
        total_processed=report.total_processed,
        successful_inserts=report.inserted_rows,
        failed_inserts=report.failed_rows,
        duplicates_skipped=report.duplicate_rows,
        invalid_rows=report.invalid_rows,
        not_attempted=report.not_attempted_rows,
        errors_truncated=report.errors_truncated,
        errors=[
            ImportErrorResponse(
                row_number=error.row_number,
                customer_identity=error.customer_identity,
                error=error.error,
                stage=error.stage,
            )
            for error in report.errors
        ],
    )
