"""
app/services package marker.
"""

from app.services.batch_executor import BatchExecutor, ExecutionResult
from app.services.duplicate_detector import DuplicateDetector, compute_fingerprint
from app.services.import_report import build_import_report, report_to_dict
from app.services.order_import_service import OrderImportService, get_order_import_service

__all__ = [
    "BatchExecutor",
    "DuplicateDetector",
    "ExecutionResult",
    "OrderImportService",
    "build_import_report",
    "compute_fingerprint",
    "get_order_import_service",
    "report_to_dict",
]
