"""
db/models/mapping_config.py

Saved header mappings for recurring order spreadsheet layouts.
"""

from __future__ import annotations

import uuid

from sqlalchemy import Boolean, Index, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, TimestampMixin


class MappingConfig(Base, TimestampMixin):
    """
    A named canonical-field to column mapping, optionally scoped to one client.

    ``field_mapping_json`` pins fields to columns and is applied before any
    automatic matching; ``alias_overrides_json`` extends the synonym table.
    """

    __tablename__ = "mapping_configs"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(
        String(120),
        nullable=False,
        comment="Layout name, e.g. 'shopee_export'",
    )
    client_name: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        comment="Client the layout belongs to; NULL for shared layouts",
    )
    field_mapping_json: Mapped[dict[str, str]] = mapped_column(
        JSONB,
        nullable=False,
        comment="Order field -> spreadsheet column",
    )
    alias_overrides_json: Mapped[dict[str, list[str]] | None] = mapped_column(
        JSONB,
        nullable=True,
        comment="Order field -> extra header synonyms",
    )
    notes: Mapped[str | None] = mapped_column(String(500), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        UniqueConstraint("name", "client_name", name="uq_mapping_configs_name_client_name"),
        Index("ix_mapping_configs_client_active", "client_name", "is_active"),
    )
