"""Row transformation utilities for order import."""

from app.transformers.row_transformer import OrderRowTransformer

__all__ = ["OrderRowTransformer"]
