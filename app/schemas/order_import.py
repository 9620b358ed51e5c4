"""
app/schemas/order_import.py

Response schemas for order import endpoints. Field names serialize as camelCase.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class LineItemResponse(_CamelModel):
    product_name: str
    quantity: int = Field(..., ge=1)
    unit_price: Decimal | None = None


class PreviewRowResponse(_CamelModel):
    """
    One parsed order as it would be inserted.
    """

    row_number: int = Field(..., ge=1)
    customer_name: str | None = None
    phone_number: str | None = None
    email: str | None = None
    facebook_handle: str | None = None
    order_date: date
    total_amount: Decimal
    currency: str
    status: str
    payment_method: str | None = None
    shipping_address: str | None = None
    notes: str | None = None
    items: list[LineItemResponse] = Field(default_factory=list)


class ValidationSummaryResponse(_CamelModel):
    is_valid: bool
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    total_rows: int = Field(..., ge=0)
    valid_rows: int = Field(..., ge=0)
    invalid_rows: int = Field(..., ge=0)
    duplicate_rows: int = Field(..., ge=0)
    errors_truncated: bool = False
    status: str


class ValidateDataResponse(_CamelModel):
    detected_headers: list[str]
    field_mapping: dict[str, str]
    unmapped_fields: list[str] = Field(default_factory=list)
    validation: ValidationSummaryResponse
    preview: list[PreviewRowResponse] = Field(default_factory=list)


class ValidateImportResponse(_CamelModel):
    success: bool
    data: ValidateDataResponse


class ImportErrorResponse(_CamelModel):
    """
    One failed row: validation or insert.
    """

    row_number: int = Field(..., ge=1)
    customer_identity: str
    error: str
    stage: str


class ExecuteDataResponse(_CamelModel):
    success: bool
    status: str
    total_rows: int = Field(..., ge=0)
    total_processed: int = Field(..., ge=0)
    successful_inserts: int = Field(..., ge=0)
    failed_inserts: int = Field(..., ge=0)
    duplicates_skipped: int = Field(..., ge=0)
    invalid_rows: int = Field(..., ge=0)
    not_attempted: int = Field(..., ge=0)
    errors_truncated: bool = False
    errors: list[ImportErrorResponse] = Field(default_factory=list)


class ExecuteImportResponse(_CamelModel):
    success: bool
    data: ExecuteDataResponse
