"""
app/schemas package marker.
"""

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

__all__ = [
    "ExecuteDataResponse",
    "ExecuteImportResponse",
    "ImportErrorResponse",
    "LineItemResponse",
    "PreviewRowResponse",
    "ValidateDataResponse",
    "ValidateImportResponse",
    "ValidationSummaryResponse",
]
