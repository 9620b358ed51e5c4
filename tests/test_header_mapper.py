from __future__ import annotations

import unittest

from app.domain.order_import import RawRow
from app.mappers.header_mapper import HeaderMapper, normalize_header, similarity
from app.validators.mapping_validator import MappingError
from db.models.mapping_config import MappingConfig


class TestHeaderMapper(unittest.TestCase):
    def setUp(self) -> None:
        self.mapper = HeaderMapper()

    def test_maps_common_headers_by_name_and_synonym(self) -> None:
        resolution = self.mapper.resolve_mapping(["Name", "Phone", "Order Date", "Amount"])

        self.assertEqual(
            resolution.canonical_to_source,
            {
                "customer_name": "Name",
                "phone_number": "Phone",
                "order_date": "Order Date",
                "total_amount": "Amount",
            },
        )
        self.assertEqual(resolution.match_strategies["order_date"], "exact")
        self.assertEqual(resolution.match_strategies["customer_name"], "synonym")
        self.assertIn("email", resolution.unmapped_fields)

    def test_auto_detects_columns_with_fuzzy_matching(self) -> None:
        headers = ["Custmer Name", "Phone Numbr", "Order Dte", "Totl Amount"]

        resolution = self.mapper.resolve_mapping(headers)

        self.assertEqual(resolution.canonical_to_source["customer_name"], "Custmer Name")
        self.assertEqual(resolution.canonical_to_source["phone_number"], "Phone Numbr")
        self.assertEqual(resolution.canonical_to_source["order_date"], "Order Dte")
        self.assertEqual(resolution.canonical_to_source["total_amount"], "Totl Amount")
        self.assertEqual(resolution.match_strategies["order_date"], "fuzzy")

    def test_manual_override_mapping_takes_precedence(self) -> None:
        headers = ["Buyer", "Tel", "When", "Paid"]
        manual = {"customer_name": "Buyer", "order_date": "when", "total_amount": "Paid"}

        resolution = self.mapper.resolve_mapping(headers, manual_overrides=manual)

        self.assertEqual(resolution.canonical_to_source["order_date"], "When")
        self.assertEqual(resolution.match_strategies["order_date"], "override")
        self.assertEqual(resolution.canonical_to_source["phone_number"], "Tel")

    def test_header_is_used_at_most_once(self) -> None:
        resolution = self.mapper.resolve_mapping(["Phone", "Phone", "Name", "Date"])

        sources = list(resolution.canonical_to_source.values())
        self.assertEqual(len(sources), len(set(sources)))
        self.assertEqual(resolution.canonical_to_source["phone_number"], "Phone")

    def test_invalid_manual_override_raises_structured_error(self) -> None:
        headers = ["Name", "Phone", "Order Date", "Amount"]

        with self.assertRaises(MappingError) as ctx:
            self.mapper.resolve_mapping(headers, manual_overrides={"unknown_field": "Name"})

        error_codes = {error.code for error in ctx.exception.errors}
        self.assertIn("invalid_override_field", error_codes)

    def test_override_to_missing_column_raises_structured_error(self) -> None:
        headers = ["Name", "Phone", "Order Date", "Amount"]

        with self.assertRaises(MappingError) as ctx:
            self.mapper.resolve_mapping(headers, manual_overrides={"notes": "Remarks"})

        error_codes = {error.code for error in ctx.exception.errors}
        self.assertIn("override_source_not_found", error_codes)

    def test_missing_order_date_raises_with_partial_mapping(self) -> None:
        with self.assertRaises(MappingError) as ctx:
            self.mapper.resolve_mapping(["Name", "Phone", "Amount"])

        self.assertIn("order_date", ctx.exception.missing_fields)
        self.assertEqual(ctx.exception.partial_mapping["customer_name"], "Name")
        self.assertEqual(ctx.exception.to_dict()["message"], ctx.exception.message)

    def test_missing_customer_identity_raises(self) -> None:
        with self.assertRaises(MappingError) as ctx:
            self.mapper.resolve_mapping(["Order Date", "Amount"])

        self.assertIn("customer_name | phone_number", ctx.exception.missing_fields)

    def test_uses_db_mapping_config_overrides_and_aliases(self) -> None:
        mapping_config = MappingConfig(
            name="shopee_export",
            client_name="client_a",
            field_mapping_json={"customer_name": "Pelanggan"},
            alias_overrides_json={"total_amount": ["Jumlah Bayaran"]},
            is_active=True,
        )

        resolution = self.mapper.resolve_mapping(
            ["Pelanggan", "Tarikh", "Jumlah Bayaran"],
            mapping_config=mapping_config,
        )

        self.assertEqual(resolution.canonical_to_source["customer_name"], "Pelanggan")
        self.assertEqual(resolution.match_strategies["customer_name"], "override")
        self.assertEqual(resolution.canonical_to_source["order_date"], "Tarikh")
        self.assertEqual(resolution.canonical_to_source["total_amount"], "Jumlah Bayaran")
        self.assertEqual(resolution.match_strategies["total_amount"], "synonym")

    def test_manual_override_beats_mapping_config(self) -> None:
        mapping_config = MappingConfig(
            name="shared",
            field_mapping_json={"customer_name": "Name"},
            alias_overrides_json=None,
            is_active=True,
        )

        resolution = self.mapper.resolve_mapping(
            ["Name", "Buyer", "Order Date"],
            mapping_config=mapping_config,
            manual_overrides={"customer_name": "Buyer"},
        )

        self.assertEqual(resolution.canonical_to_source["customer_name"], "Buyer")

    def test_map_row_projects_canonical_fields(self) -> None:
        resolution = self.mapper.resolve_mapping(["Name", "Order Date"])
        raw_row = RawRow(row_number=2, values={"Name": "Jane", "Order Date": "2024-03-01"})

        mapped = self.mapper.map_row(raw_row=raw_row, mapping=resolution)

        self.assertEqual(mapped, {"customer_name": "Jane", "order_date": "2024-03-01"})


class TestHeaderNormalization(unittest.TestCase):
    def test_normalize_header_drops_case_and_punctuation(self) -> None:
        self.assertEqual(normalize_header(" Order_Date (DD/MM) "), "orderdateddmm")

    def test_similarity_rewards_contained_names(self) -> None:
        self.assertGreaterEqual(similarity("customername", "name"), 0.9)
        self.assertEqual(similarity("amount", "amount"), 1.0)
        self.assertLess(similarity("email", "orderdate"), 0.5)


if __name__ == "__main__":
    unittest.main()
