"""
app/mappers package marker.
"""

from app.mappers.header_mapper import (
    CANONICAL_FIELDS,
    CUSTOMER_IDENTITY_FIELDS,
    DEFAULT_SYNONYMS,
    REQUIRED_CANONICAL_FIELDS,
    HeaderMapper,
    normalize_header,
)

__all__ = [
    "CANONICAL_FIELDS",
    "CUSTOMER_IDENTITY_FIELDS",
    "DEFAULT_SYNONYMS",
    "REQUIRED_CANONICAL_FIELDS",
    "HeaderMapper",
    "normalize_header",
]
