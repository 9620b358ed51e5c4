"""
app/decoders package marker.
"""

from app.decoders.tabular_decoder import (
    DecodedTable,
    RowScanner,
    TabularDecoder,
    TabularFormat,
    detect_format,
)

__all__ = [
    "DecodedTable",
    "RowScanner",
    "TabularDecoder",
    "TabularFormat",
    "detect_format",
]
