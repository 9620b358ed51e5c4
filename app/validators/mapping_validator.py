"""
app/validators/mapping_validator.py

Validation for order import header mappings.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence

from app.domain.errors import OrderImportError


@dataclass(frozen=True)
class MappingErrorDetail:
    """
    Structured mapping error detail.
    """

    code: str
    message: str
    canonical_field: str | None = None
    source_column: str | None = None
    context: dict[str, Any] | None = None


class MappingError(OrderImportError, ValueError):
    """
    Raised when required canonical fields cannot be mapped to source headers.

    ``partial_mapping`` carries whatever was resolved so previews can still
    show it next to the failure.
    """

    def __init__(
        self,
        *,
        message: str,
        errors: Sequence[MappingErrorDetail],
        partial_mapping: dict[str, str] | None = None,
        source_headers: Sequence[str] = (),
    ) -> None:
        super().__init__(message)
        self.message = message
        self.errors = tuple(errors)
        self.partial_mapping = dict(partial_mapping or {})
        self.source_headers = tuple(source_headers)

    @property
    def missing_fields(self) -> list[str]:
        return [
            error.canonical_field
            for error in self.errors
            if error.code == "required_field_unmapped" and error.canonical_field
        ]

    def to_dict(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "errors": [
                {
                    "code": error.code,
                    "message": error.message,
                    "canonical_field": error.canonical_field,
                    "source_column": error.source_column,
                    "context": error.context,
                }
                for error in self.errors
            ],
        }


class MappingValidator:
    """
    Validates resolved canonical-to-source mappings.

    ``required_fields`` must each be mapped; for every group in
    ``required_any_of`` at least one member must be mapped.
    """

    def __init__(
        self,
        *,
        required_fields: Sequence[str],
        canonical_fields: Sequence[str],
        required_any_of: Sequence[Sequence[str]] = (),
    ) -> None:
        self._required_fields = tuple(required_fields)
        self._canonical_fields = tuple(canonical_fields)
        self._canonical_set = set(self._canonical_fields)
        self._required_any_of = tuple(tuple(group) for group in required_any_of)

    def validate(
        self,
        *,
        mapping: dict[str, str],
        source_headers: Sequence[str],
        pre_errors: Sequence[MappingErrorDetail] | None = None,
    ) -> None:
        """
        Validate mapping and raise ``MappingError`` if invalid.
        """

        errors: list[MappingErrorDetail] = list(pre_errors or [])
        headers_set = set(source_headers)

        for canonical_field, source_column in mapping.items():
            if canonical_field not in self._canonical_set:
                errors.append(
                    MappingErrorDetail(
                        code="invalid_canonical_field",
                        message="Unknown canonical field in mapping.",
                        canonical_field=canonical_field,
                        source_column=source_column,
                    )
                )
            if source_column not in headers_set:
                errors.append(
                    MappingErrorDetail(
                        code="unknown_source_column",
                        message="Mapped source column does not exist in file headers.",
                        canonical_field=canonical_field,
                        source_column=source_column,
                    )
                )

        for required in self._required_fields:
            if required not in mapping:
                errors.append(
                    MappingErrorDetail(
                        code="required_field_unmapped",
                        message="Required canonical field is not mapped.",
                        canonical_field=required,
                        context={"source_headers": list(source_headers)},
                    )
                )

        for group in self._required_any_of:
            if not any(member in mapping for member in group):
                errors.append(
                    MappingErrorDetail(
                        code="required_field_unmapped",
                        message=f"One of {', '.join(group)} must be mapped.",
                        canonical_field=" | ".join(group),
                        context={"source_headers": list(source_headers)},
                    )
                )

        if errors:
            missing_required = [
                error.canonical_field
                for error in errors
                if error.code == "required_field_unmapped" and error.canonical_field
            ]
            missing_text = ", ".join(sorted(set(missing_required))) or "none"
            raise MappingError(
                message=f"Header mapping validation failed. Missing required fields: {missing_text}.",
                errors=errors,
                partial_mapping={
                    field: column for field, column in mapping.items() if column in headers_set
                },
                source_headers=source_headers,
            )
