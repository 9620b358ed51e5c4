"""
db/models/customer.py

Customer model. Imported orders attach to a customer matched by phone number,
or by case-insensitive name when the row carries no phone.
"""

import uuid
from typing import TYPE_CHECKING

from sqlalchemy import Index, String, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.base import Base, TimestampMixin

if TYPE_CHECKING:
    from db.models.order import Order


class Customer(Base, TimestampMixin):
    __tablename__ = "customers"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    phone_number: Mapped[str | None] = mapped_column(
        String(32),
        nullable=True,
        comment="E.164-style number, +<country code><digits>",
    )

    email: Mapped[str | None] = mapped_column(String(320), nullable=True)

    facebook_handle: Mapped[str | None] = mapped_column(String(255), nullable=True)

    shipping_address: Mapped[str | None] = mapped_column(String(1000), nullable=True)

    # ── Relationships ──────────────────────────────────────────────────────────

    orders: Mapped[list["Order"]] = relationship(
        "Order",
        back_populates="customer",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    # ── Indexes ────────────────────────────────────────────────────────────────

    __table_args__ = (
        Index("ix_customers_phone_number", "phone_number"),
    )

    def __repr__(self) -> str:
        return f"<Customer id={self.id} name={self.name!r} phone={self.phone_number!r}>"


Index("ix_customers_name_lower", func.lower(Customer.name))
