"""
app/repositories/mapping_config_repository.py

Lookup and upsert of saved order import header mappings.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from db.models.mapping_config import MappingConfig


class MappingConfigRepository:
    """
    Repository for saved header mappings.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def get_active(
        self,
        *,
        name: str | None = None,
        client_name: str | None = None,
    ) -> MappingConfig | None:
        """
        Resolve one active mapping config.

        A client-scoped config wins over a shared one (``client_name`` NULL)
        with the same name. Returns ``None`` when neither filter is given.
        """

        if not (name and name.strip()) and not (client_name and client_name.strip()):
            return None

        stmt = select(MappingConfig).where(MappingConfig.is_active.is_(True))
        if name and name.strip():
            stmt = stmt.where(MappingConfig.name == name.strip())
        if client_name and client_name.strip():
            stmt = stmt.where(
                (MappingConfig.client_name == client_name.strip())
                | MappingConfig.client_name.is_(None)
            )
            stmt = stmt.order_by(MappingConfig.client_name.is_(None))
        stmt = stmt.order_by(MappingConfig.updated_at.desc())
        return self._session.execute(stmt).scalars().first()

    def save(
        self,
        *,
        name: str,
        field_mapping: dict[str, str],
        client_name: str | None = None,
        alias_overrides: dict[str, list[str]] | None = None,
        notes: str | None = None,
        is_active: bool = True,
    ) -> MappingConfig:
        """
        Insert or update the mapping keyed by (name, client_name).
        """

        normalized_name = name.strip()
        normalized_client = client_name.strip() if client_name else None

        stmt = select(MappingConfig).where(MappingConfig.name == normalized_name)
        if normalized_client is None:
            stmt = stmt.where(MappingConfig.client_name.is_(None))
        else:
            stmt = stmt.where(MappingConfig.client_name == normalized_client)
        config = self._session.execute(stmt).scalars().first()

        if config is None:
            config = MappingConfig(
                name=normalized_name,
                client_name=normalized_client,
                field_mapping_json=dict(field_mapping),
                alias_overrides_json=alias_overrides,
                notes=notes,
                is_active=is_active,
            )
            self._session.add(config)
        else:
            config.field_mapping_json = dict(field_mapping)
            config.alias_overrides_json = alias_overrides
            config.notes = notes
            config.is_active = is_active

        self._session.flush()
        return config
