"""
app/repositories/order_store.py

Order persistence boundary for the import pipeline.

The pipeline only talks to ``OrderStore``. ``SQLAlchemyOrderStore`` is the
PostgreSQL implementation; it opens a fresh session per call so concurrent
batches never share one.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Sequence
from typing import Protocol

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.domain.errors import StoreError
from app.domain.order_import import Fingerprint, ImportRow, RowInsertOutcome
from db.models.customer import Customer
from db.models.order import Order, OrderItem

logger = logging.getLogger(__name__)

_MAX_ERROR_LENGTH = 300


class OrderStore(Protocol):
    """
    Persistence operations the import pipeline depends on.

    ``insert_batch`` reports one outcome per row it attempted; raising means
    the whole batch failed. ``run_id`` tags the inserted orders.
    ``exists_by_fingerprint`` raises on lookup failure.
    """

    def insert_batch(self, rows: Sequence[ImportRow], *, run_id: str | None = None) -> list[RowInsertOutcome]:
        ...

    def exists_by_fingerprint(self, fingerprint: Fingerprint) -> bool:
        ...


class SQLAlchemyOrderStore:
    """
    ``OrderStore`` backed by the ``customers``/``orders``/``order_items`` tables.
    """

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def insert_batch(self, rows: Sequence[ImportRow], *, run_id: str | None = None) -> list[RowInsertOutcome]:
        """
        Insert rows in one transaction with a SAVEPOINT per row.

        A row that violates a constraint is rolled back to its savepoint and
        reported failed; the rest of the batch still commits.
        """

        if not rows:
            return []

        outcomes: list[RowInsertOutcome] = []
        session = self._session_factory()
        try:
            for row in rows:
                try:
                    with session.begin_nested():
                        order_id = self._insert_row(session, row, run_id=run_id)
                except SQLAlchemyError as exc:
                    message = _describe_db_error(exc)
                    logger.warning(
                        "Order insert failed row=%s identity=%r: %s",
                        row.row_number,
                        row.customer_identity,
                        message,
                    )
                    outcomes.append(RowInsertOutcome(row_number=row.row_number, inserted=False, error=message))
                else:
                    outcomes.append(
                        RowInsertOutcome(row_number=row.row_number, inserted=True, order_id=str(order_id))
                    )
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            raise StoreError(f"Failed to commit order batch: {_describe_db_error(exc)}") from exc
        finally:
            session.close()

        return outcomes

    def exists_by_fingerprint(self, fingerprint: Fingerprint) -> bool:
        """
        True when an order with the same customer identity, date and total exists.
        """

        stmt = (
            select(Order.id)
            .join(Customer, Order.customer_id == Customer.id)
            .where(Order.order_date == fingerprint.order_date)
            .where(Order.total_amount == fingerprint.total_amount)
        )
        if fingerprint.phone_number is not None:
            stmt = stmt.where(Customer.phone_number == fingerprint.phone_number)
        else:
            stmt = stmt.where(Customer.phone_number.is_(None))
            stmt = stmt.where(func.lower(Customer.name) == (fingerprint.customer_name or ""))
        stmt = stmt.limit(1)

        session = self._session_factory()
        try:
            return session.execute(stmt).first() is not None
        except SQLAlchemyError as exc:
            raise StoreError(f"Duplicate lookup failed: {_describe_db_error(exc)}") from exc
        finally:
            session.close()

    def _insert_row(self, session: Session, row: ImportRow, *, run_id: str | None) -> uuid.UUID:
        customer = self._resolve_customer(session, row)
        order = Order(
            customer=customer,
            order_date=row.order_date,
            total_amount=row.total_amount,
            currency=row.currency,
            status=row.status,
            payment_method=row.payment_method,
            notes=row.notes,
            shipping_address=row.shipping_address,
            import_run_id=run_id,
            source_row_number=row.row_number,
            items=[
                OrderItem(
                    product_name=item.product_name,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                )
                for item in row.line_items
            ],
        )
        session.add(order)
        session.flush()
        return order.id

    def _resolve_customer(self, session: Session, row: ImportRow) -> Customer:
        stmt = select(Customer)
        if row.phone_number:
            stmt = stmt.where(Customer.phone_number == row.phone_number)
        else:
            stmt = stmt.where(Customer.phone_number.is_(None))
            stmt = stmt.where(func.lower(Customer.name) == (row.customer_name or "").lower())
        customer = session.execute(stmt.order_by(Customer.created_at).limit(1)).scalars().first()

        if customer is None:
            customer = Customer(
                name=row.customer_name,
                phone_number=row.phone_number,
                email=row.email,
                facebook_handle=row.facebook_handle,
                shipping_address=row.shipping_address,
            )
            session.add(customer)
            return customer

        # Fill gaps only; existing contact details are never overwritten.
        if customer.name is None and row.customer_name:
            customer.name = row.customer_name
        if customer.email is None and row.email:
            customer.email = row.email
        if customer.facebook_handle is None and row.facebook_handle:
            customer.facebook_handle = row.facebook_handle
        if customer.shipping_address is None and row.shipping_address:
            customer.shipping_address = row.shipping_address
        return customer


def _describe_db_error(exc: SQLAlchemyError) -> str:
    original = getattr(exc, "orig", None)
    message = str(original if original is not None else exc).strip().splitlines()
    text = message[0] if message else exc.__class__.__name__
    return text[:_MAX_ERROR_LENGTH]
