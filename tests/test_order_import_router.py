from __future__ import annotations

import unittest
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from app.api.dependencies import get_order_store
from app.config import OrderImportSettings
from app.main import create_app
from app.services.order_import_service import OrderImportService, get_order_import_service
from db.session import get_db

SAMPLE_CSV = (
    b"Name,Phone,Order Date,Amount\n"
    b"Jane Doe,+60123456789,2024-03-01,150.00\n"
    b"Ahmad Ali,0198765432,2024-03-02,-10\n"
    b"Siti,0162223333,2024-03-03,45.50\n"
)


def _override_db():
    yield None


class TestOrderImportRouter(unittest.TestCase):
    @pytest.fixture(autouse=True)
    def _client(self, order_store) -> None:
        self.store = order_store
        self.service = OrderImportService(settings=OrderImportSettings(max_file_bytes=4096))

        application = create_app(check_database=False)
        application.dependency_overrides[get_db] = _override_db
        application.dependency_overrides[get_order_store] = lambda: self.store
        application.dependency_overrides[get_order_import_service] = lambda: self.service
        self.client = TestClient(application)

    def test_health(self) -> None:
        response = self.client.get("/health")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"status": "ok"})

    def test_validate_returns_camel_case_summary(self) -> None:
        response = self.client.post(
            "/api/import/validate",
            files={"file": ("orders.csv", SAMPLE_CSV, "text/csv")},
        )

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertTrue(body["success"])
        data = body["data"]
        self.assertEqual(data["detectedHeaders"], ["Name", "Phone", "Order Date", "Amount"])
        self.assertEqual(data["fieldMapping"]["total_amount"], "Amount")
        validation = data["validation"]
        self.assertTrue(validation["isValid"])
        self.assertEqual(validation["totalRows"], 3)
        self.assertEqual(validation["validRows"], 2)
        self.assertEqual(validation["invalidRows"], 1)
        self.assertEqual(validation["errors"], ["Row 3: total_amount: amount must be non-negative"])
        self.assertEqual(Decimal(str(data["preview"][0]["totalAmount"])), Decimal("150.00"))
        self.assertEqual(self.store.calls, 0)

    def test_validate_reports_mapping_failure_in_body(self) -> None:
        response = self.client.post(
            "/api/import/validate",
            files={"file": ("orders.csv", b"Name,Amount\nJane,10\n", "text/csv")},
        )

        self.assertEqual(response.status_code, 200)
        validation = response.json()["data"]["validation"]
        self.assertFalse(validation["isValid"])
        self.assertEqual(validation["status"], "mapping_failed")
        self.assertTrue(validation["errors"])

    def test_execute_inserts_and_skips_duplicates_on_rerun(self) -> None:
        files = {"file": ("orders.csv", SAMPLE_CSV, "text/csv")}
        form = {"skipDuplicates": "true", "batchSize": "1"}

        first = self.client.post("/api/import/execute", files=files, data=form)
        second = self.client.post("/api/import/execute", files=files, data=form)

        self.assertEqual(first.status_code, 200)
        data = first.json()["data"]
        self.assertTrue(data["success"])
        self.assertEqual(data["successfulInserts"], 2)
        self.assertEqual(data["failedInserts"], 1)
        self.assertEqual(data["duplicatesSkipped"], 0)
        self.assertEqual(
            data["successfulInserts"] + data["failedInserts"] + data["duplicatesSkipped"],
            data["totalProcessed"],
        )
        self.assertEqual(data["errors"][0]["rowNumber"], 3)
        self.assertEqual(data["errors"][0]["stage"], "validation")

        self.assertEqual(second.json()["data"]["successfulInserts"], 0)
        self.assertEqual(second.json()["data"]["duplicatesSkipped"], 2)
        self.assertEqual(len(self.store.rows), 2)

    def test_execute_mapping_failure_is_bad_request(self) -> None:
        response = self.client.post(
            "/api/import/execute",
            files={"file": ("orders.csv", b"Name,Amount\nJane,10\n", "text/csv")},
        )

        self.assertEqual(response.status_code, 400)
        detail = response.json()["detail"]
        self.assertIn("order_date", detail["message"])
        self.assertEqual(self.store.calls, 0)

    def test_rejects_legacy_and_unknown_file_types(self) -> None:
        legacy = self.client.post(
            "/api/import/validate",
            files={"file": ("orders.xls", b"\xd0\xcf\x11\xe0", "application/vnd.ms-excel")},
        )
        pdf = self.client.post(
            "/api/import/validate",
            files={"file": ("orders.pdf", b"%PDF-1.4", "application/pdf")},
        )

        self.assertEqual(legacy.status_code, 400)
        self.assertEqual(pdf.status_code, 400)

    def test_rejects_oversized_upload(self) -> None:
        content = b"Name,Order Date\n" + b"Jane Doe,2024-03-01\n" * 500

        response = self.client.post(
            "/api/import/validate",
            files={"file": ("orders.csv", content, "text/csv")},
        )

        self.assertEqual(response.status_code, 413)

    def test_empty_file_is_bad_request(self) -> None:
        response = self.client.post(
            "/api/import/validate",
            files={"file": ("orders.csv", b"", "text/csv")},
        )

        self.assertEqual(response.status_code, 400)

    def test_download_template(self) -> None:
        response = self.client.get("/api/import/template", params={"format": "csv"})

        self.assertEqual(response.status_code, 200)
        self.assertIn("order_import_template.csv", response.headers["content-disposition"])
        self.assertTrue(response.content.startswith(b"Customer Name,Phone Number"))

    def test_download_template_rejects_unknown_format(self) -> None:
        response = self.client.get("/api/import/template", params={"format": "pdf"})

        self.assertEqual(response.status_code, 422)


if __name__ == "__main__":
    unittest.main()
