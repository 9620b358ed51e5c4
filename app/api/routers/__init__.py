"""
app/api/routers package marker.
"""

from app.api.routers.order_import import router as order_import_router

__all__ = [
    "order_import_router",
]
