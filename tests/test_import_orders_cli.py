from __future__ import annotations

import json
from unittest.mock import MagicMock

import pytest

from scripts import import_orders
from scripts.import_orders import EXIT_FAILED, EXIT_OK, main


def _write(tmp_path, content: bytes):
    path = tmp_path / "orders.csv"
    path.write_bytes(content)
    return path


def test_offline_dry_run_prints_report(tmp_path, capsys) -> None:
    path = _write(tmp_path, b"Name,Phone,Order Date,Amount\nJane Doe,+60123456789,2024-03-01,150.00\n")

    exit_code = main([str(path), "--offline"])

    payload = json.loads(capsys.readouterr().out)
    assert exit_code == EXIT_OK
    assert payload["mode"] == "preview"
    assert payload["valid_rows"] == 1
    assert payload["preview"][0]["phone_number"] == "+60123456789"


def test_map_option_pins_columns(tmp_path, capsys) -> None:
    path = _write(tmp_path, b"Who,When\nJane,2024-03-01\n")

    exit_code = main([str(path), "--offline", "--map", "customer_name=Who", "--map", "order_date=When"])

    payload = json.loads(capsys.readouterr().out)
    assert exit_code == EXIT_OK
    assert payload["field_mapping"] == {"customer_name": "Who", "order_date": "When"}


def test_unmappable_file_fails(tmp_path, capsys) -> None:
    path = _write(tmp_path, b"Name,Amount\nJane,10\n")

    exit_code = main([str(path), "--offline"])

    payload = json.loads(capsys.readouterr().out)
    assert exit_code == EXIT_FAILED
    assert payload["status"] == "mapping_failed"


def test_offline_cannot_execute(tmp_path) -> None:
    path = _write(tmp_path, b"Name,Order Date\nJane,2024-03-01\n")

    with pytest.raises(SystemExit) as ctx:
        main([str(path), "--offline", "--execute"])

    assert ctx.value.code == 2


def test_save_mapping_persists_resolved_columns(tmp_path, capsys, monkeypatch, order_store) -> None:
    session = MagicMock()
    saved: list[dict] = []

    class RecordingRepository:
        def __init__(self, db) -> None:
            self.db = db

        def get_active(self, **kwargs):
            return None

        def save(self, **kwargs) -> None:
            saved.append(kwargs)

    monkeypatch.setattr(import_orders, "SessionLocal", lambda: session)
    monkeypatch.setattr(import_orders, "MappingConfigRepository", RecordingRepository)
    monkeypatch.setattr(import_orders, "SQLAlchemyOrderStore", lambda session_factory: order_store)
    path = _write(tmp_path, b"Name,Phone,Order Date,Amount\nJane Doe,+60123456789,2024-03-01,150.00\n")

    exit_code = main([str(path), "--save-mapping", "shop_export", "--client", "acme"])

    payload = json.loads(capsys.readouterr().out)
    assert exit_code == EXIT_OK
    assert payload["saved_mapping"] == "shop_export"
    assert saved == [
        {
            "name": "shop_export",
            "client_name": "acme",
            "field_mapping": {
                "customer_name": "Name",
                "phone_number": "Phone",
                "order_date": "Order Date",
                "total_amount": "Amount",
            },
        }
    ]
    session.__enter__.return_value.commit.assert_called_once()


def test_offline_cannot_save_mapping(tmp_path) -> None:
    path = _write(tmp_path, b"Name,Order Date\nJane,2024-03-01\n")

    with pytest.raises(SystemExit) as ctx:
        main([str(path), "--offline", "--save-mapping", "shop_export"])

    assert ctx.value.code == 2
