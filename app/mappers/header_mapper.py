"""
app/mappers/header_mapper.py

Infers the mapping from detected spreadsheet headers to canonical order fields.
"""

from __future__ import annotations

from difflib import SequenceMatcher
from typing import Any, Callable, Mapping, Sequence

from app.domain.order_import import FieldMapping, RawRow
from app.validators.mapping_validator import MappingErrorDetail, MappingValidator

CANONICAL_FIELDS: tuple[str, ...] = (
    "customer_name",
    "phone_number",
    "email",
    "facebook_handle",
    "order_date",
    "total_amount",
    "currency",
    "status",
    "payment_method",
    "notes",
    "shipping_address",
    "items",
    "product_name",
    "quantity",
    "unit_price",
)

REQUIRED_CANONICAL_FIELDS: tuple[str, ...] = ("order_date",)

# At least one customer identity column must be present.
CUSTOMER_IDENTITY_FIELDS: tuple[str, ...] = ("customer_name", "phone_number")

DEFAULT_SYNONYMS: dict[str, tuple[str, ...]] = {
    "customer_name": ("name", "customer", "client", "client name", "buyer", "buyer name", "full name", "nama"),
    "phone_number": ("phone", "phone no", "mobile", "mobile no", "contact", "contact number", "tel", "whatsapp", "hp"),
    "email": ("e-mail", "email address", "mail"),
    "facebook_handle": ("facebook", "fb", "fb name", "fb handle", "facebook name", "messenger"),
    "order_date": ("date", "order date", "purchase date", "created at", "created", "ordered at", "tarikh"),
    "total_amount": ("amount", "total", "grand total", "order total", "price total", "total price", "sales", "jumlah"),
    "currency": ("currency code", "ccy", "curr"),
    "status": ("order status", "payment status", "financial status", "state"),
    "payment_method": ("payment", "payment type", "paid via", "pay method", "payment mode"),
    "notes": ("note", "remarks", "remark", "comment", "comments", "catatan"),
    "shipping_address": ("address", "delivery address", "ship to", "alamat"),
    "items": ("order items", "products", "line items", "item list", "package", "packages"),
    "product_name": ("product", "item", "item name", "sku name"),
    "quantity": ("qty", "units", "quantity ordered"),
    "unit_price": ("price", "unit cost", "item price"),
}

_MIN_SUBSTRING_LENGTH = 4
_SUBSTRING_SCORE = 0.9


def normalize_header(header: str) -> str:
    """
    Normalize a column name for flexible matching.
    """

    return "".join(ch for ch in header.strip().lower() if ch.isalnum())


class HeaderMapper:
    """
    Resolves source spreadsheet headers into a canonical ``FieldMapping``.

    Passes run in order over every still-unmapped field: manual overrides,
    exact name match, synonym lookup, fuzzy match. A header is used at most
    once and ties go to the leftmost header.
    """

    def __init__(
        self,
        *,
        synonyms: Mapping[str, Sequence[str]] | None = None,
        validator: MappingValidator | None = None,
        fuzzy_threshold: float = 0.84,
    ) -> None:
        self._synonyms: dict[str, tuple[str, ...]] = {
            canonical: tuple(values)
            for canonical, values in (synonyms or DEFAULT_SYNONYMS).items()
        }
        self._validator = validator or MappingValidator(
            required_fields=REQUIRED_CANONICAL_FIELDS,
            canonical_fields=CANONICAL_FIELDS,
            required_any_of=(CUSTOMER_IDENTITY_FIELDS,),
        )
        self._fuzzy_threshold = max(0.0, min(1.0, fuzzy_threshold))

    def resolve_mapping(
        self,
        headers: Sequence[str],
        *,
        manual_overrides: Mapping[str, str] | None = None,
        mapping_config: Any | None = None,
    ) -> FieldMapping:
        """
        Resolve canonical-to-source mapping from headers, overrides, and saved config.

        Raises ``MappingError`` when a required field stays unmapped.
        """

        source_headers = tuple(header for header in headers if header and header.strip())
        normalized_headers: list[tuple[str, str]] = [
            (normalize_header(header), header)
            for header in source_headers
            if normalize_header(header)
        ]

        resolved: dict[str, str] = {}
        strategies: dict[str, str] = {}
        mapping_errors = self._apply_overrides(
            overrides=self._merge_overrides(mapping_config=mapping_config, manual_overrides=manual_overrides),
            normalized_headers=normalized_headers,
            source_headers=source_headers,
            resolved=resolved,
            strategies=strategies,
        )
        synonyms = self._synonyms_with_config(mapping_config)
        used_headers = set(resolved.values())

        passes: tuple[tuple[str, Callable[[str, set[str]], str | None]], ...] = (
            ("exact", lambda field, used: self._find_exact_match(field, normalized_headers, used)),
            ("synonym", lambda field, used: self._find_synonym_match(field, synonyms, normalized_headers, used)),
            ("fuzzy", lambda field, used: self._find_best_fuzzy_match(field, synonyms, normalized_headers, used)),
        )
        for strategy, finder in passes:
            for canonical_field in CANONICAL_FIELDS:
                if canonical_field in resolved:
                    continue
                match = finder(canonical_field, used_headers)
                if match is not None:
                    resolved[canonical_field] = match
                    strategies[canonical_field] = strategy
                    used_headers.add(match)

        self._validator.validate(
            mapping=resolved,
            source_headers=source_headers,
            pre_errors=mapping_errors,
        )

        config_id = None
        if mapping_config is not None:
            raw_id = getattr(mapping_config, "id", None)
            config_id = str(raw_id) if raw_id is not None else None

        ordered = {field: resolved[field] for field in CANONICAL_FIELDS if field in resolved}
        return FieldMapping(
            canonical_to_source=ordered,
            source_headers=source_headers,
            match_strategies={field: strategies[field] for field in ordered},
            unmapped_fields=frozenset(field for field in CANONICAL_FIELDS if field not in resolved),
            mapping_config_id=config_id,
        )

    def map_row(self, *, raw_row: RawRow, mapping: FieldMapping) -> dict[str, str | None]:
        """
        Project one raw row onto canonical field names.
        """

        return {
            canonical_field: raw_row.get(source_column)
            for canonical_field, source_column in mapping.canonical_to_source.items()
        }

    @staticmethod
    def _apply_overrides(
        *,
        overrides: Mapping[str, str],
        normalized_headers: Sequence[tuple[str, str]],
        source_headers: Sequence[str],
        resolved: dict[str, str],
        strategies: dict[str, str],
    ) -> list[MappingErrorDetail]:
        errors: list[MappingErrorDetail] = []
        for canonical_field, source_column in overrides.items():
            if canonical_field not in CANONICAL_FIELDS:
                errors.append(
                    MappingErrorDetail(
                        code="invalid_override_field",
                        message="Manual override contains unknown canonical field.",
                        canonical_field=canonical_field,
                        source_column=source_column,
                    )
                )
                continue

            target = normalize_header(source_column)
            matched_source = next((raw for norm, raw in normalized_headers if norm == target), None)
            if matched_source is None:
                errors.append(
                    MappingErrorDetail(
                        code="override_source_not_found",
                        message="Manual override points to a column not present in the file headers.",
                        canonical_field=canonical_field,
                        source_column=source_column,
                        context={"source_headers": list(source_headers)},
                    )
                )
                continue

            resolved[canonical_field] = matched_source
            strategies[canonical_field] = "override"
        return errors

    @staticmethod
    def _find_exact_match(
        canonical_field: str,
        normalized_headers: Sequence[tuple[str, str]],
        used_headers: set[str],
    ) -> str | None:
        target = normalize_header(canonical_field)
        for header_norm, header_raw in normalized_headers:
            if header_raw not in used_headers and header_norm == target:
                return header_raw
        return None

    @staticmethod
    def _find_synonym_match(
        canonical_field: str,
        synonyms: Mapping[str, Sequence[str]],
        normalized_headers: Sequence[tuple[str, str]],
        used_headers: set[str],
    ) -> str | None:
        candidates = {normalize_header(item) for item in synonyms.get(canonical_field, ())}
        candidates.discard("")
        for header_norm, header_raw in normalized_headers:
            if header_raw not in used_headers and header_norm in candidates:
                return header_raw
        return None

    def _find_best_fuzzy_match(
        self,
        canonical_field: str,
        synonyms: Mapping[str, Sequence[str]],
        normalized_headers: Sequence[tuple[str, str]],
        used_headers: set[str],
    ) -> str | None:
        alias_candidates = [canonical_field, *synonyms.get(canonical_field, ())]
        normalized_candidates = [normalize_header(item) for item in alias_candidates if normalize_header(item)]
        if not normalized_candidates:
            return None

        best_header: str | None = None
        best_score = 0.0
        for header_norm, header_raw in normalized_headers:
            if header_raw in used_headers:
                continue
            for candidate in normalized_candidates:
                score = similarity(header_norm, candidate)
                # Strict comparison keeps the leftmost header on ties.
                if score > best_score:
                    best_score = score
                    best_header = header_raw

        if best_header is not None and best_score >= self._fuzzy_threshold:
            return best_header
        return None

    @staticmethod
    def _merge_overrides(
        *,
        mapping_config: Any | None,
        manual_overrides: Mapping[str, str] | None,
    ) -> dict[str, str]:
        merged: dict[str, str] = {}

        if mapping_config is not None:
            config_mapping = getattr(mapping_config, "field_mapping_json", None)
            if isinstance(config_mapping, dict):
                for key, value in config_mapping.items():
                    if isinstance(key, str) and isinstance(value, str):
                        if key.strip() and value.strip():
                            merged[key.strip()] = value.strip()

        if manual_overrides:
            for key, value in manual_overrides.items():
                if key.strip() and value.strip():
                    merged[key.strip()] = value.strip()

        return merged

    def _synonyms_with_config(self, mapping_config: Any | None) -> dict[str, tuple[str, ...]]:
        if mapping_config is None:
            return self._synonyms
        aliases_json = getattr(mapping_config, "alias_overrides_json", None)
        if not isinstance(aliases_json, dict):
            return self._synonyms

        merged = dict(self._synonyms)
        for canonical_field, raw_aliases in aliases_json.items():
            if not isinstance(raw_aliases, list):
                continue
            extra = tuple(alias for alias in raw_aliases if isinstance(alias, str) and alias.strip())
            merged[canonical_field] = (*merged.get(canonical_field, ()), *extra)
        return merged


def similarity(left: str, right: str) -> float:
    """
    Similarity of two normalized headers in [0, 1].
    """

    score = SequenceMatcher(None, left, right).ratio()
    shorter = min(len(left), len(right))
    if shorter >= _MIN_SUBSTRING_LENGTH and (left in right or right in left):
        score = max(score, _SUBSTRING_SCORE)
    return score
