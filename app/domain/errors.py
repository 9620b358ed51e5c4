"""
app/domain/errors.py

Exception taxonomy for the order import pipeline.

Only file-level problems are raised. Row-level problems are carried as
``RowIssue`` values on row outcomes and never raised.
"""

from __future__ import annotations


class OrderImportError(Exception):
    """Base exception for order import failures."""


class FormatError(OrderImportError, ValueError):
    """
    Raised when an uploaded file cannot be decoded or has no header row.
    """


class StoreError(OrderImportError, RuntimeError):
    """
    Raised by order store implementations when a whole store call fails.
    """
