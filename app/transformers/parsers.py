"""
app/transformers/parsers.py

Field parsers for messy spreadsheet cells. Each parser returns the parsed value
or raises ``ValueError`` with a message fit for a row-level error.
"""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from app.domain.order_import import LineItem

CENTS = Decimal("0.01")

_DAY_FIRST_DATE_FORMATS: tuple[str, ...] = (
    "%Y-%m-%d",
    "%Y%m%d",
    "%d/%m/%Y",
    "%d/%m/%y",
    "%d-%m-%Y",
    "%d-%m-%y",
    "%d.%m.%Y",
    "%d.%m.%y",
    "%Y/%m/%d",
    "%d %b %Y",
    "%d %B %Y",
    "%d-%b-%Y",
    "%d-%b-%y",
    "%b %d %Y",
    "%b %d, %Y",
    "%B %d, %Y",
)

_MONTH_FIRST_DATE_FORMATS: tuple[str, ...] = (
    "%Y-%m-%d",
    "%Y%m%d",
    "%m/%d/%Y",
    "%m/%d/%y",
    "%m-%d-%Y",
    "%m-%d-%y",
    "%m.%d.%Y",
    "%m.%d.%y",
    "%Y/%m/%d",
    "%d %b %Y",
    "%d %B %Y",
    "%d-%b-%Y",
    "%d-%b-%y",
    "%b %d %Y",
    "%b %d, %Y",
    "%B %d, %Y",
)

_TIME_SUFFIXES: tuple[str, ...] = ("", " %H:%M", " %H:%M:%S", " %I:%M %p", " %I:%M:%S %p")

_ISO_DATE_PREFIX = re.compile(r"^\d{4}-\d{2}-\d{2}")
_EXCEL_EPOCH = date(1899, 12, 30)
_EXCEL_SERIAL_RANGE = (20000, 80000)
_MIN_YEAR = 1900

# Longest symbols first so "US$" wins over "$".
CURRENCY_SYMBOLS: dict[str, str] = {
    "US$": "USD",
    "S$": "SGD",
    "A$": "AUD",
    "HK$": "HKD",
    "RM": "MYR",
    "RP": "IDR",
    "€": "EUR",
    "£": "GBP",
    "¥": "JPY",
    "₱": "PHP",
    "฿": "THB",
    "$": "USD",
}

KNOWN_CURRENCY_CODES: frozenset[str] = frozenset(
    {"MYR", "USD", "SGD", "AUD", "HKD", "IDR", "EUR", "GBP", "JPY", "PHP", "THB", "CNY", "INR", "BND", "VND"}
)

_CURRENCY_CODE_PATTERN = re.compile(r"\b([A-Z]{3})\b")
_SCIENTIFIC_NUMBER = re.compile(r"^\d+(\.\d+)?[eE]\+?\d+$")
_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_FACEBOOK_PREFIX = re.compile(r"^(https?://)?(www\.|m\.|web\.)?(facebook\.com|fb\.com|fb\.me)/", re.IGNORECASE)

_ITEM_SEPARATORS = re.compile(r"[;|\n]")
_ITEM_NAME_TIMES_QTY = re.compile(r"^(?P<name>.+?)\s*[xX×*]\s*(?P<qty>\d+)$")
_ITEM_QTY_TIMES_NAME = re.compile(r"^(?P<qty>\d+)\s*[xX×*]\s+(?P<name>.+)$")
_ITEM_NAME_PAREN_QTY = re.compile(r"^(?P<name>.+?)\s*\((?P<qty>\d+)\)$")

ORDER_STATUSES: tuple[str, ...] = (
    "pending",
    "processing",
    "paid",
    "shipped",
    "completed",
    "cancelled",
    "refunded",
)

STATUS_SYNONYMS: dict[str, str] = {
    "pending": "pending",
    "unpaid": "pending",
    "awaiting payment": "pending",
    "new": "pending",
    "on hold": "pending",
    "processing": "processing",
    "in progress": "processing",
    "preparing": "processing",
    "paid": "paid",
    "payment received": "paid",
    "settled": "paid",
    "shipped": "shipped",
    "dispatched": "shipped",
    "in transit": "shipped",
    "posted": "shipped",
    "sent": "shipped",
    "completed": "completed",
    "complete": "completed",
    "done": "completed",
    "delivered": "completed",
    "fulfilled": "completed",
    "success": "completed",
    "successful": "completed",
    "closed": "completed",
    "cancelled": "cancelled",
    "canceled": "cancelled",
    "void": "cancelled",
    "voided": "cancelled",
    "failed": "cancelled",
    "refunded": "refunded",
    "refund": "refunded",
    "returned": "refunded",
}


def is_blank(value: object) -> bool:
    return value is None or not str(value).strip()


def collapse_whitespace(value: str) -> str:
    return " ".join(value.split())


def parse_order_date(raw: str, *, day_first: bool = True) -> date:
    """
    Parse a date cell in ISO, day-first (or month-first) or Excel-serial form.
    """

    text = collapse_whitespace(raw)
    if not text:
        raise ValueError("Required value is missing.")

    parsed = _parse_iso(text)
    if parsed is None and text.isdigit():
        serial = int(text)
        if _EXCEL_SERIAL_RANGE[0] <= serial <= _EXCEL_SERIAL_RANGE[1]:
            parsed = _EXCEL_EPOCH + timedelta(days=serial)
    if parsed is None:
        formats = _DAY_FIRST_DATE_FORMATS if day_first else _MONTH_FIRST_DATE_FORMATS
        parsed = _parse_with_formats(text, formats)
    if parsed is None:
        raise ValueError("Invalid date format.")
    if parsed.year < _MIN_YEAR:
        raise ValueError("Order date is out of range.")
    return parsed


def _parse_iso(text: str) -> date | None:
    if not _ISO_DATE_PREFIX.match(text):
        return None
    normalized = text[:-1] + "+00:00" if text.endswith("Z") else text
    try:
        return datetime.fromisoformat(normalized).date()
    except ValueError:
        pass
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


def _parse_with_formats(text: str, formats: tuple[str, ...]) -> date | None:
    for fmt in formats:
        for suffix in _TIME_SUFFIXES:
            try:
                return datetime.strptime(text, fmt + suffix).date()
            except ValueError:
                continue
    return None


def detect_currency(raw: str) -> str | None:
    """
    Return the ISO code for a currency symbol or code found in ``raw``.
    """

    upper = raw.strip().upper()
    for symbol, code in CURRENCY_SYMBOLS.items():
        if symbol in upper:
            return code
    for match in _CURRENCY_CODE_PATTERN.finditer(upper):
        if match.group(1) in KNOWN_CURRENCY_CODES:
            return match.group(1)
    return None


def normalize_currency(raw: str) -> str:
    text = raw.strip().upper()
    if text in KNOWN_CURRENCY_CODES:
        return text
    detected = detect_currency(text)
    if detected is None:
        raise ValueError("Unknown currency.")
    return detected


def parse_amount(raw: str) -> tuple[Decimal, str | None]:
    """
    Parse a money cell into ``(amount, detected_currency)``.

    Currency symbols and codes are stripped; ``1.234,56``, ``1,234.56`` and
    ``150,00`` are all understood; ``(10)`` is negative.
    """

    text = raw.strip().upper()
    if not text:
        raise ValueError("Required value is missing.")

    currency = detect_currency(text)
    negative = False
    if text.startswith("(") and text.endswith(")"):
        negative = True
        text = text[1:-1]

    for symbol in CURRENCY_SYMBOLS:
        text = text.replace(symbol, "")
    if currency is not None:
        text = text.replace(currency, "")
    text = re.sub(r"[\s'\u00a0]", "", text)

    if text.startswith("-"):
        negative = not negative
        text = text[1:]
    elif text.endswith("-"):
        negative = not negative
        text = text[:-1]

    if not text or not re.fullmatch(r"[0-9.,]+", text) or not any(ch.isdigit() for ch in text):
        raise ValueError("Amount could not be parsed.")

    text = _normalize_separators(text)
    try:
        amount = Decimal(text).quantize(CENTS, rounding=ROUND_HALF_UP)
    except InvalidOperation as exc:
        raise ValueError("Amount could not be parsed.") from exc
    return (-amount if negative else amount), currency


def _normalize_separators(text: str) -> str:
    has_dot = "." in text
    has_comma = "," in text
    if has_dot and has_comma:
        if text.rfind(",") > text.rfind("."):
            return text.replace(".", "").replace(",", ".")
        return text.replace(",", "")
    if has_comma:
        head, _, tail = text.rpartition(",")
        if text.count(",") == 1 and len(tail) in (1, 2):
            return f"{head}.{tail}"
        return text.replace(",", "")
    if text.count(".") > 1:
        return text.replace(".", "")
    return text


def normalize_phone(raw: str, *, default_country_code: str) -> str:
    """
    Normalize a phone cell to ``+<countrycode><digits>``.
    """

    text = raw.strip()
    if not text:
        raise ValueError("Required value is missing.")
    if _SCIENTIFIC_NUMBER.match(text):
        text = str(int(Decimal(text)))

    has_plus = text.startswith("+")
    digits = re.sub(r"\D", "", text)
    if not digits:
        raise ValueError("Phone number contains no digits.")

    country_code = default_country_code.lstrip("+")
    if has_plus:
        pass
    elif digits.startswith("00"):
        digits = digits[2:]
    elif digits.startswith(country_code) and len(digits) >= len(country_code) + 8:
        pass
    elif digits.startswith("0"):
        digits = country_code + digits[1:]
    else:
        digits = country_code + digits

    if not 8 <= len(digits) <= 15:
        raise ValueError("Phone number must have between 8 and 15 digits.")
    return f"+{digits}"


def normalize_email(raw: str) -> str:
    text = raw.strip().lower()
    if not _EMAIL_PATTERN.match(text):
        raise ValueError("Email address is not valid.")
    return text


def normalize_facebook_handle(raw: str) -> str:
    text = _FACEBOOK_PREFIX.sub("", raw.strip()).strip("/").lstrip("@")
    text = text.split("?", 1)[0]
    if not text:
        raise ValueError("Facebook handle is empty.")
    return text


def normalize_status(raw: str) -> str:
    key = collapse_whitespace(raw).lower().replace("_", " ").replace("-", " ")
    status = STATUS_SYNONYMS.get(key)
    if status is None:
        raise ValueError(f"Unknown status. Allowed values: {', '.join(ORDER_STATUSES)}.")
    return status


def parse_quantity(raw: str) -> int:
    text = raw.strip()
    try:
        value = Decimal(text)
    except InvalidOperation as exc:
        raise ValueError("Quantity must be a whole number.") from exc
    if not value.is_finite() or value != value.to_integral_value():
        raise ValueError("Quantity must be a whole number.")
    quantity = int(value)
    if quantity < 1:
        raise ValueError("Quantity must be at least 1.")
    return quantity


def parse_line_items(raw: str) -> tuple[list[LineItem], list[str]]:
    """
    Split an items cell such as ``Serum x2; Cleanser (1); Toner`` into line items.

    Returns the parsed items and the fragments that could not be understood.
    """

    items: list[LineItem] = []
    rejected: list[str] = []
    for fragment in _ITEM_SEPARATORS.split(raw):
        part = collapse_whitespace(fragment)
        if not part:
            continue
        match = (
            _ITEM_NAME_TIMES_QTY.match(part)
            or _ITEM_QTY_TIMES_NAME.match(part)
            or _ITEM_NAME_PAREN_QTY.match(part)
        )
        if match is None:
            items.append(LineItem(product_name=part))
            continue
        quantity = int(match.group("qty"))
        name = match.group("name").strip()
        if quantity < 1 or not name:
            rejected.append(part)
            continue
        items.append(LineItem(product_name=name, quantity=quantity))
    return items, rejected
