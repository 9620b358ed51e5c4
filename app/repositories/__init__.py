"""
app/repositories package marker.
"""

from app.repositories.mapping_config_repository import MappingConfigRepository
from app.repositories.order_store import OrderStore, SQLAlchemyOrderStore

__all__ = [
    "MappingConfigRepository",
    "OrderStore",
    "SQLAlchemyOrderStore",
]
