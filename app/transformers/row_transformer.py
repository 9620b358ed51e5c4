"""
app/transformers/row_transformer.py

Row-level validation and type parsing for order import.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Mapping, TypeVar

from app.domain.order_import import (
    ImportRow,
    InvalidRow,
    LineItem,
    RowIssue,
    RowOutcome,
    ValidRow,
)
from app.transformers.parsers import (
    CENTS,
    collapse_whitespace,
    is_blank,
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

T = TypeVar("T")

DEFAULT_STATUS = "completed"
NEGATIVE_AMOUNT_MESSAGE = "amount must be non-negative"
MISSING_IDENTITY_MESSAGE = "customer identity is missing"


class OrderRowTransformer:
    """
    Converts one raw row into a ``ValidRow`` or ``InvalidRow`` outcome.

    Every field is attempted even after an earlier field failed, so all issues
    for a row surface together. Nothing here raises for bad cell data.
    """

    def __init__(
        self,
        *,
        default_currency: str = "MYR",
        default_country_code: str = "60",
        day_first: bool = True,
        default_status: str = DEFAULT_STATUS,
    ) -> None:
        self._default_currency = default_currency.upper()
        self._default_country_code = default_country_code.lstrip("+")
        self._day_first = day_first
        self._default_status = default_status

    def transform_values(self, *, values: Mapping[str, str | None], row_number: int) -> RowOutcome:
        """
        Validate and parse one row of canonical field values.

        Never raises on cell content; every problem becomes a ``RowIssue``.
        """

        errors: list[RowIssue] = []
        warnings: list[RowIssue] = []

        customer_name = self._parse_optional_text(values.get("customer_name"))
        phone_number = self._parse_phone(
            value=values.get("phone_number"),
            row_number=row_number,
            identity_required=customer_name is None,
            errors=errors,
            warnings=warnings,
        )
        if customer_name is None and phone_number is None and is_blank(values.get("phone_number")):
            errors.append(RowIssue(row_number=row_number, message=MISSING_IDENTITY_MESSAGE))

        order_date = self._parse_field(
            value=values.get("order_date"),
            row_number=row_number,
            column="order_date",
            parser=lambda raw: parse_order_date(raw, day_first=self._day_first),
            issues=errors,
            required=True,
        )

        line_items = self._parse_line_items(values=values, row_number=row_number, warnings=warnings)
        total_amount, amount_currency = self._parse_total_amount(
            value=values.get("total_amount"),
            row_number=row_number,
            line_items=line_items,
            errors=errors,
            warnings=warnings,
        )
        currency = self._parse_currency(
            value=values.get("currency"),
            fallback=amount_currency,
            row_number=row_number,
            warnings=warnings,
        )
        status = self._parse_status(value=values.get("status"), row_number=row_number, warnings=warnings)

        email = self._parse_field(
            value=values.get("email"),
            row_number=row_number,
            column="email",
            parser=normalize_email,
            issues=warnings,
        )
        facebook_handle = self._parse_field(
            value=values.get("facebook_handle"),
            row_number=row_number,
            column="facebook_handle",
            parser=normalize_facebook_handle,
            issues=warnings,
        )

        if errors or order_date is None:
            identity = customer_name or phone_number or self._parse_optional_text(values.get("phone_number")) or ""
            return InvalidRow(row_number=row_number, errors=tuple(errors), customer_identity=identity)

        return ValidRow(
            ImportRow(
                row_number=row_number,
                customer_name=customer_name,
                phone_number=phone_number,
                order_date=order_date,
                currency=currency,
                total_amount=total_amount,
                status=status,
                email=email,
                facebook_handle=facebook_handle,
                payment_method=self._parse_optional_text(values.get("payment_method")),
                notes=self._parse_optional_text(values.get("notes")),
                shipping_address=self._parse_optional_text(values.get("shipping_address")),
                line_items=tuple(line_items),
                warnings=tuple(warnings),
            )
        )

    def _parse_phone(
        self,
        *,
        value: str | None,
        row_number: int,
        identity_required: bool,
        errors: list[RowIssue],
        warnings: list[RowIssue],
    ) -> str | None:
        if is_blank(value):
            return None
        try:
            return normalize_phone(str(value), default_country_code=self._default_country_code)
        except ValueError as exc:
            issue = RowIssue(
                row_number=row_number,
                column="phone_number",
                message=str(exc),
                value=str(value),
            )
            (errors if identity_required else warnings).append(issue)
            return None

    def _parse_total_amount(
        self,
        *,
        value: str | None,
        row_number: int,
        line_items: list[LineItem],
        errors: list[RowIssue],
        warnings: list[RowIssue],
    ) -> tuple[Decimal, str | None]:
        if is_blank(value):
            computed = self._sum_line_items(line_items)
            if computed is not None:
                warnings.append(
                    RowIssue(
                        row_number=row_number,
                        column="total_amount",
                        message="Amount is empty; total computed from line items.",
                    )
                )
                return computed, None
            warnings.append(
                RowIssue(
                    row_number=row_number,
                    column="total_amount",
                    message="Amount is empty; defaulted to 0.00.",
                )
            )
            return Decimal("0.00"), None

        try:
            amount, currency = parse_amount(str(value))
        except ValueError as exc:
            errors.append(
                RowIssue(row_number=row_number, column="total_amount", message=str(exc), value=str(value))
            )
            return Decimal("0.00"), None

        if amount < 0:
            errors.append(
                RowIssue(
                    row_number=row_number,
                    column="total_amount",
                    message=NEGATIVE_AMOUNT_MESSAGE,
                    value=str(value),
                )
            )
        return amount, currency

    def _parse_currency(
        self,
        *,
        value: str | None,
        fallback: str | None,
        row_number: int,
        warnings: list[RowIssue],
    ) -> str:
        if is_blank(value):
            return fallback or self._default_currency
        try:
            return normalize_currency(str(value))
        except ValueError as exc:
            warnings.append(
                RowIssue(
                    row_number=row_number,
                    column="currency",
                    message=f"{exc} Defaulted to {fallback or self._default_currency}.",
                    value=str(value),
                )
            )
            return fallback or self._default_currency

    def _parse_status(self, *, value: str | None, row_number: int, warnings: list[RowIssue]) -> str:
        if is_blank(value):
            return self._default_status
        try:
            return normalize_status(str(value))
        except ValueError as exc:
            warnings.append(
                RowIssue(
                    row_number=row_number,
                    column="status",
                    message=f"{exc} Defaulted to {self._default_status}.",
                    value=str(value),
                )
            )
            return self._default_status

    def _parse_line_items(
        self,
        *,
        values: Mapping[str, str | None],
        row_number: int,
        warnings: list[RowIssue],
    ) -> list[LineItem]:
        items_cell = values.get("items")
        if not is_blank(items_cell):
            items, rejected = parse_line_items(str(items_cell))
            for fragment in rejected:
                warnings.append(
                    RowIssue(
                        row_number=row_number,
                        column="items",
                        message="Line item could not be parsed and was skipped.",
                        value=fragment,
                    )
                )
            return items

        product_name = self._parse_optional_text(values.get("product_name"))
        if product_name is None:
            return []

        quantity = 1
        raw_quantity = values.get("quantity")
        if not is_blank(raw_quantity):
            try:
                quantity = parse_quantity(str(raw_quantity))
            except ValueError as exc:
                warnings.append(
                    RowIssue(
                        row_number=row_number,
                        column="quantity",
                        message=f"{exc} Defaulted to 1.",
                        value=str(raw_quantity),
                    )
                )

        unit_price: Decimal | None = None
        raw_price = values.get("unit_price")
        if not is_blank(raw_price):
            try:
                unit_price, _ = parse_amount(str(raw_price))
            except ValueError as exc:
                warnings.append(
                    RowIssue(row_number=row_number, column="unit_price", message=str(exc), value=str(raw_price))
                )
            else:
                if unit_price < 0:
                    warnings.append(
                        RowIssue(
                            row_number=row_number,
                            column="unit_price",
                            message="Unit price must be non-negative; ignored.",
                            value=str(raw_price),
                        )
                    )
                    unit_price = None

        return [LineItem(product_name=product_name, quantity=quantity, unit_price=unit_price)]

    @staticmethod
    def _sum_line_items(line_items: list[LineItem]) -> Decimal | None:
        if not line_items or any(item.unit_price is None for item in line_items):
            return None
        total = sum((item.unit_price * item.quantity for item in line_items if item.unit_price is not None), Decimal("0"))
        try:
            return total.quantize(CENTS)
        except InvalidOperation:
            return None

    @staticmethod
    def _parse_field(
        *,
        value: str | None,
        row_number: int,
        column: str,
        parser: Callable[[str], T],
        issues: list[RowIssue],
        required: bool = False,
    ) -> T | None:
        if is_blank(value):
            if required:
                issues.append(
                    RowIssue(
                        row_number=row_number,
                        column=column,
                        message="Required value is missing.",
                        value=_stringify_value(value),
                    )
                )
            return None
        try:
            return parser(str(value))
        except ValueError as exc:
            issues.append(
                RowIssue(row_number=row_number, column=column, message=str(exc), value=str(value))
            )
            return None

    @staticmethod
    def _parse_optional_text(value: str | None) -> str | None:
        if is_blank(value):
            return None
        return collapse_whitespace(str(value))


def _stringify_value(value: Any) -> str | None:
    if value is None:
        return None
    return str(value)
