"""
tests/test_parsers.py

Pytest unit tests for the spreadsheet cell parsers.

Coverage
--------
- Order dates: ISO, day-first vs month-first, Excel serials, junk
- Amounts: currency symbols, both decimal conventions, negatives
- Phone normalization to +<country code><digits>
- Status synonyms, email, Facebook handles, quantities
- Line item cells
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from app.domain.order_import import LineItem
from app.transformers.parsers import (
    normalize_currency,
    normalize_email,
    normalize_facebook_handle,
    normalize_phone,
    normalize_status,
    parse_amount,
    parse_line_items,
    parse_order_date,
    parse_quantity,
)


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------


class TestParseOrderDate:
    @pytest.mark.parametrize(
        "raw",
        ["2024-03-01", "2024-03-01T10:15:00Z", "01/03/2024", "1 Mar 2024", "45352", "01.03.2024 14:30"],
    )
    def test_day_first_inputs(self, raw: str) -> None:
        assert parse_order_date(raw) == date(2024, 3, 1)

    def test_month_first(self) -> None:
        assert parse_order_date("01/03/2024", day_first=False) == date(2024, 1, 3)

    def test_blank_is_missing(self) -> None:
        with pytest.raises(ValueError, match="missing"):
            parse_order_date("   ")

    @pytest.mark.parametrize("raw", ["yesterday", "31/02/2024", "2024-13-40"])
    def test_invalid_dates(self, raw: str) -> None:
        with pytest.raises(ValueError):
            parse_order_date(raw)


# ---------------------------------------------------------------------------
# Amounts and currency
# ---------------------------------------------------------------------------


class TestParseAmount:
    @pytest.mark.parametrize(
        ("raw", "amount", "currency"),
        [
            ("150.00", Decimal("150.00"), None),
            ("RM 1,234.50", Decimal("1234.50"), "MYR"),
            ("1.234,56", Decimal("1234.56"), None),
            ("150,00", Decimal("150.00"), None),
            ("$5", Decimal("5.00"), "USD"),
            ("89.9 SGD", Decimal("89.90"), "SGD"),
            ("-10", Decimal("-10.00"), None),
            ("(10)", Decimal("-10.00"), None),
            ("0.005", Decimal("0.01"), None),
        ],
    )
    def test_parses_money(self, raw: str, amount: Decimal, currency: str | None) -> None:
        assert parse_amount(raw) == (amount, currency)

    @pytest.mark.parametrize("raw", ["abc", "RM", "1.2.3,4,5x", "123456789012345678901234567"])
    def test_rejects_non_numbers(self, raw: str) -> None:
        with pytest.raises(ValueError):
            parse_amount(raw)

    def test_normalize_currency(self) -> None:
        assert normalize_currency(" myr ") == "MYR"
        assert normalize_currency("RM") == "MYR"
        with pytest.raises(ValueError):
            normalize_currency("XYZ")


# ---------------------------------------------------------------------------
# Contact fields
# ---------------------------------------------------------------------------


class TestNormalizePhone:
    @pytest.mark.parametrize(
        "raw",
        ["012-345 6789", "+60 12-345 6789", "60123456789", "0060123456789", "6.0123456789E+10"],
    )
    def test_normalizes_to_e164_like(self, raw: str) -> None:
        assert normalize_phone(raw, default_country_code="60") == "+60123456789"

    def test_adds_country_code_to_bare_local_number(self) -> None:
        assert normalize_phone("123456789", default_country_code="65") == "+65123456789"

    @pytest.mark.parametrize("raw", ["abc", "123", "+1234567890123456"])
    def test_rejects_bad_numbers(self, raw: str) -> None:
        with pytest.raises(ValueError):
            normalize_phone(raw, default_country_code="60")


def test_normalize_email() -> None:
    assert normalize_email(" Jane@Example.COM ") == "jane@example.com"
    with pytest.raises(ValueError):
        normalize_email("jane.example.com")


def test_normalize_facebook_handle() -> None:
    assert normalize_facebook_handle("https://www.facebook.com/jane.doe?ref=bookmarks") == "jane.doe"
    assert normalize_facebook_handle("@jane.doe") == "jane.doe"
    with pytest.raises(ValueError):
        normalize_facebook_handle("https://facebook.com/")


@pytest.mark.parametrize(
    ("raw", "expected"),
    [("Delivered", "completed"), ("canceled", "cancelled"), ("IN_TRANSIT", "shipped"), ("Unpaid", "pending")],
)
def test_normalize_status(raw: str, expected: str) -> None:
    assert normalize_status(raw) == expected


def test_normalize_status_rejects_unknown() -> None:
    with pytest.raises(ValueError, match="Unknown status"):
        normalize_status("lost in space")


# ---------------------------------------------------------------------------
# Quantities and line items
# ---------------------------------------------------------------------------


def test_parse_quantity() -> None:
    assert parse_quantity("2") == 2
    assert parse_quantity("3.0") == 3
    for raw in ("0", "1.5", "two", "Infinity", "-inf", "NaN"):
        with pytest.raises(ValueError):
            parse_quantity(raw)


def test_parse_line_items_understands_common_shapes() -> None:
    items, rejected = parse_line_items("Serum x2; Cleanser (1); 3 x Toner | Lip Balm")

    assert items == [
        LineItem(product_name="Serum", quantity=2),
        LineItem(product_name="Cleanser", quantity=1),
        LineItem(product_name="Toner", quantity=3),
        LineItem(product_name="Lip Balm", quantity=1),
    ]
    assert rejected == []


def test_parse_line_items_rejects_zero_quantity() -> None:
    items, rejected = parse_line_items("Serum x0; Toner")

    assert items == [LineItem(product_name="Toner", quantity=1)]
    assert rejected == ["Serum x0"]


def test_parse_line_items_keeps_commas_in_product_names() -> None:
    items, rejected = parse_line_items("Serum, 50ml x2; Toner")

    assert items == [
        LineItem(product_name="Serum, 50ml", quantity=2),
        LineItem(product_name="Toner", quantity=1),
    ]
    assert rejected == []
