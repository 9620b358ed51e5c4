"""
app/decoders/tabular_decoder.py

Decodes uploaded CSV / XLSX payloads into header lists and raw rows.
"""

from __future__ import annotations

import csv
import io
import logging
import zipfile
from contextlib import closing
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from app.domain.errors import FormatError
from app.domain.order_import import RawRow

logger = logging.getLogger(__name__)


class TabularFormat:
    CSV = "csv"
    XLSX = "xlsx"


_EXTENSION_FORMATS: dict[str, str] = {
    ".csv": TabularFormat.CSV,
    ".tsv": TabularFormat.CSV,
    ".txt": TabularFormat.CSV,
    ".xlsx": TabularFormat.XLSX,
    ".xlsm": TabularFormat.XLSX,
}

_ZIP_MAGIC = b"PK\x03\x04"
_OLE_MAGIC = b"\xd0\xcf\x11\xe0"
_CANDIDATE_DELIMITERS = ",;\t|"
_SNIFF_SAMPLE_CHARS = 64 * 1024
DEFAULT_ENCODINGS: tuple[str, ...] = ("utf-8-sig", "cp1252")


def detect_format(content: bytes, filename: str | None = None) -> str:
    """
    Resolve the payload format from the filename extension, else from content.
    """

    name = (filename or "").strip().lower()
    if name.endswith(".xls"):
        raise FormatError("Legacy .xls workbooks are not supported. Save the file as .xlsx or .csv.")
    for extension, fmt in _EXTENSION_FORMATS.items():
        if name.endswith(extension):
            return fmt

    if content.startswith(_ZIP_MAGIC):
        return TabularFormat.XLSX
    if content.startswith(_OLE_MAGIC):
        raise FormatError("Legacy .xls workbooks are not supported. Save the file as .xlsx or .csv.")
    return TabularFormat.CSV


def cell_to_text(value: Any) -> str | None:
    """
    Convert one spreadsheet cell into the string form used by raw rows.
    """

    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, datetime):
        if value.time() == time(0, 0):
            return value.date().isoformat()
        return value.isoformat(sep=" ")
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, float):
        if value.is_integer():
            return str(int(value))
        return format(Decimal(repr(value)), "f")
    if isinstance(value, int):
        return str(value)
    text = str(value).replace("\xa0", " ")
    return text


def unique_headers(raw_headers: Sequence[Any]) -> tuple[str, ...]:
    """
    Clean header cells: blanks become ``column_<n>``, repeats get ``_<k>``.
    """

    headers: list[str] = []
    seen: dict[str, int] = {}
    for index, raw in enumerate(raw_headers, start=1):
        text = (cell_to_text(raw) or "").strip()
        if not text:
            text = f"column_{index}"
        key = text.lower()
        count = seen.get(key, 0) + 1
        seen[key] = count
        headers.append(text if count == 1 else f"{text}_{count}")
    return tuple(headers)


@dataclass(frozen=True)
class DecodedTable:
    """
    Decoded file: detected headers plus a restartable row sequence.

    Rows are re-parsed from ``content`` on every ``iter_rows()`` call.
    """

    format: str
    headers: tuple[str, ...]
    header_row_number: int
    content: bytes
    encoding: str | None = None
    delimiter: str | None = None

    def iter_rows(self) -> RowScanner:
        return RowScanner(self)

    def __iter__(self) -> Iterator[RawRow]:
        return self.iter_rows()

    def records(self) -> Iterator[tuple[int, list[Any]]]:
        """
        Raw ``(row_number, cells)`` records below the header row.
        """

        if self.format == TabularFormat.XLSX:
            records = _iter_xlsx_records(self.content)
        else:
            records = _iter_csv_records(
                self.content,
                encoding=self.encoding or DEFAULT_ENCODINGS[0],
                delimiter=self.delimiter or ",",
            )
        for row_number, cells in records:
            if row_number > self.header_row_number:
                yield row_number, cells


class RowScanner:
    """
    Single forward pass over the data rows of a ``DecodedTable``.

    Blank rows are skipped. ``count_remaining`` drains the rest of the pass
    without converting cells, for runs that stop part way through.
    """

    def __init__(self, table: DecodedTable) -> None:
        self._headers = table.headers
        self._width = len(table.headers)
        self._records = table.records()

    def __iter__(self) -> RowScanner:
        return self

    def __next__(self) -> RawRow:
        for row_number, cells in self._records:
            values = [cell_to_text(cell) for cell in cells[: self._width]]
            if all(value is None or not value.strip() for value in values):
                continue
            values.extend([None] * (self._width - len(values)))
            return RawRow(row_number=row_number, values=dict(zip(self._headers, values)))
        raise StopIteration

    def count_remaining(self) -> int:
        return sum(
            1 for _, cells in self._records if not all(_is_blank_cell(cell) for cell in cells[: self._width])
        )


class TabularDecoder:
    """
    Parses CSV and XLSX uploads into ``DecodedTable`` values.
    """

    def __init__(self, *, encodings: Sequence[str] = DEFAULT_ENCODINGS) -> None:
        self._encodings = tuple(encodings) or DEFAULT_ENCODINGS

    def decode(self, content: bytes, *, filename: str | None = None, fmt: str | None = None) -> DecodedTable:
        """
        Detect the format and header row of ``content``.
        """

        if not content:
            raise FormatError("Uploaded file is empty.")

        resolved_format = fmt or detect_format(content, filename)
        if resolved_format == TabularFormat.XLSX:
            table = self._decode_xlsx(content)
        elif resolved_format == TabularFormat.CSV:
            table = self._decode_csv(content)
        else:
            raise FormatError(f"Unsupported file format: {resolved_format}.")

        logger.info(
            "Decoded upload filename=%r format=%s headers=%d header_row=%d",
            filename,
            table.format,
            len(table.headers),
            table.header_row_number,
        )
        return table

    def _decode_csv(self, content: bytes) -> DecodedTable:
        encoding = self._detect_encoding(content)
        text = content.decode(encoding)
        delimiter = _sniff_delimiter(text[:_SNIFF_SAMPLE_CHARS])

        with closing(_iter_csv_records(content, encoding=encoding, delimiter=delimiter)) as records:
            header = _first_non_blank_record(records)
        if header is None:
            raise FormatError("CSV header row is missing.")
        row_number, cells = header
        return DecodedTable(
            format=TabularFormat.CSV,
            headers=unique_headers(cells),
            header_row_number=row_number,
            content=content,
            encoding=encoding,
            delimiter=delimiter,
        )

    def _decode_xlsx(self, content: bytes) -> DecodedTable:
        with closing(_iter_xlsx_records(content)) as records:
            header = _first_non_blank_record(records)
        if header is None:
            raise FormatError("Spreadsheet header row is missing.")
        row_number, cells = header
        return DecodedTable(
            format=TabularFormat.XLSX,
            headers=unique_headers(_trim_trailing_blanks(cells)),
            header_row_number=row_number,
            content=content,
        )

    def _detect_encoding(self, content: bytes) -> str:
        for encoding in self._encodings:
            try:
                content.decode(encoding)
            except UnicodeDecodeError:
                continue
            return encoding
        raise FormatError(f"File text could not be decoded as any of: {', '.join(self._encodings)}.")


def _sniff_delimiter(sample: str) -> str:
    header_line = next((line for line in sample.splitlines() if line.strip()), "")
    if not header_line:
        return ","
    try:
        return csv.Sniffer().sniff(header_line, delimiters=_CANDIDATE_DELIMITERS).delimiter
    except csv.Error:
        pass
    counts = {delimiter: header_line.count(delimiter) for delimiter in _CANDIDATE_DELIMITERS}
    best = max(counts, key=lambda delimiter: counts[delimiter])
    return best if counts[best] else ","


def _iter_csv_records(content: bytes, *, encoding: str, delimiter: str) -> Iterator[tuple[int, list[Any]]]:
    stream = io.StringIO(content.decode(encoding), newline="")
    reader = csv.reader(stream, delimiter=delimiter)
    try:
        for row_number, cells in enumerate(reader, start=1):
            yield row_number, list(cells)
    except csv.Error as exc:
        raise FormatError(f"Invalid CSV format: {exc}") from exc


def _iter_xlsx_records(content: bytes) -> Iterator[tuple[int, list[Any]]]:
    try:
        workbook = load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError, ValueError) as exc:
        raise FormatError(f"Spreadsheet could not be opened: {exc}") from exc

    try:
        sheet = workbook.active
        if sheet is None:
            raise FormatError("Spreadsheet has no worksheets.")
        for row_number, cells in enumerate(sheet.iter_rows(values_only=True), start=1):
            yield row_number, list(cells)
    finally:
        workbook.close()


def _first_non_blank_record(records: Iterator[tuple[int, list[Any]]]) -> tuple[int, list[Any]] | None:
    for row_number, cells in records:
        if any((cell_to_text(cell) or "").strip() for cell in cells):
            return row_number, cells
    return None


def _trim_trailing_blanks(cells: Sequence[Any]) -> list[Any]:
    trimmed = list(cells)
    while trimmed and not (cell_to_text(trimmed[-1]) or "").strip():
        trimmed.pop()
    return trimmed


def _is_blank_cell(cell: Any) -> bool:
    return cell is None or (isinstance(cell, str) and not cell.strip())
