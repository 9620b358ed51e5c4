"""
app/api/dependencies.py

Shared FastAPI dependencies for request validation.
"""

from __future__ import annotations

from fastapi import File, HTTPException, UploadFile, status

from app.repositories.order_store import OrderStore, SQLAlchemyOrderStore
from db.session import SessionLocal

SPREADSHEET_EXTENSIONS = (".csv", ".tsv", ".txt", ".xlsx", ".xlsm")

SPREADSHEET_CONTENT_TYPES = {
    "text/csv",
    "application/csv",
    "text/plain",
    "text/tab-separated-values",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.ms-excel.sheet.macroenabled.12",
}

_READ_CHUNK_BYTES = 1024 * 1024


def get_import_upload(file: UploadFile = File(...)) -> UploadFile:
    """
    Validate that the uploaded file is a CSV or XLSX by extension or MIME type.
    """

    filename = (file.filename or "").strip().lower()
    content_type = (file.content_type or "").split(";", 1)[0].strip().lower()

    if filename.endswith(".xls"):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Legacy .xls workbooks are not supported. Save the file as .xlsx or .csv.",
        )

    is_spreadsheet_filename = filename.endswith(SPREADSHEET_EXTENSIONS)
    is_spreadsheet_content_type = content_type in SPREADSHEET_CONTENT_TYPES

    if not is_spreadsheet_filename and not is_spreadsheet_content_type:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Only CSV or XLSX files are allowed.",
        )

    return file


async def read_upload(file: UploadFile, *, max_bytes: int) -> bytes:
    """
    Read the whole upload, rejecting it once it exceeds ``max_bytes``.
    """

    chunks: list[bytes] = []
    total = 0
    while True:
        chunk = await file.read(_READ_CHUNK_BYTES)
        if not chunk:
            break
        total += len(chunk)
        if total > max_bytes:
            raise HTTPException(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                detail=f"File exceeds the upload limit of {max_bytes} bytes.",
            )
        chunks.append(chunk)
    return b"".join(chunks)


def get_order_store() -> OrderStore:
    """
    Order store bound to the application database.
    """

    return SQLAlchemyOrderStore(SessionLocal)
