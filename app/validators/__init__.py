"""
app/validators package marker.
"""

from app.validators.mapping_validator import MappingError, MappingErrorDetail, MappingValidator

__all__ = [
    "MappingError",
    "MappingErrorDetail",
    "MappingValidator",
]
