"""
Import an order spreadsheet from the command line.

Without --execute the file is only validated (dry run). Exit code 0 means the
run completed, 1 means it did not (invalid file content, cancelled, timed out),
2 means the file could not be decoded or its headers could not be mapped.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from app.config import get_order_import_settings
from app.domain.errors import FormatError
from app.domain.import_context import ImportContext
from app.domain.order_import import ImportStatus
from app.repositories.mapping_config_repository import MappingConfigRepository
from app.repositories.order_store import SQLAlchemyOrderStore
from app.services.import_report import report_to_dict
from app.services.order_import_service import OrderImportService
from app.validators.mapping_validator import MappingError
from db.session import SessionLocal

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_BAD_INPUT = 2


def _parse_overrides(values: list[str]) -> dict[str, str]:
    overrides: dict[str, str] = {}
    for value in values:
        field, separator, column = value.partition("=")
        if not separator or not field.strip() or not column.strip():
            raise argparse.ArgumentTypeError(f"Invalid --map value {value!r}; expected FIELD=COLUMN.")
        overrides[field.strip()] = column.strip()
    return overrides


def _save_mapping(*, name: str, client_name: str | None, field_mapping: dict[str, str]) -> None:
    with SessionLocal() as db:
        MappingConfigRepository(db).save(name=name, client_name=client_name, field_mapping=dict(field_mapping))
        db.commit()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Validate or import an order spreadsheet (CSV / XLSX).")
    parser.add_argument("file", type=Path, help="Path to the .csv or .xlsx file.")
    parser.add_argument("--execute", action="store_true", help="Insert valid rows. Default is a dry run.")
    parser.add_argument("--batch-size", type=int, default=None, help="Rows per insert batch (1-1000).")
    parser.add_argument(
        "--no-skip-duplicates",
        dest="skip_duplicates",
        action="store_false",
        help="Insert rows even when they match an existing order.",
    )
    parser.add_argument("--timeout", type=float, default=None, help="Run timeout in seconds.")
    parser.add_argument("--client", default=None, help="Client name to scope the saved mapping config.")
    parser.add_argument("--mapping-config", default=None, help="Saved mapping config name.")
    parser.add_argument(
        "--save-mapping",
        default=None,
        metavar="NAME",
        help="Save the resolved column mapping under NAME (scoped to --client) for later runs.",
    )
    parser.add_argument(
        "--map",
        dest="overrides",
        action="append",
        default=[],
        metavar="FIELD=COLUMN",
        help="Pin an order field to a column. Repeatable.",
    )
    parser.add_argument(
        "--offline",
        action="store_true",
        help="Dry run without a database (no existing-order duplicate check).",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.WARNING, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")

    if args.execute and args.offline:
        parser.error("--offline cannot be combined with --execute.")
    if args.save_mapping and args.offline:
        parser.error("--offline cannot be combined with --save-mapping.")
    try:
        overrides = _parse_overrides(args.overrides)
    except argparse.ArgumentTypeError as exc:
        parser.error(str(exc))

    settings = get_order_import_settings()
    service = OrderImportService(settings=settings)
    context = ImportContext.create(timeout_seconds=args.timeout or settings.timeout_seconds)
    content = args.file.read_bytes()

    mapping_config = None
    store = None
    if not args.offline:
        store = SQLAlchemyOrderStore(SessionLocal)
        if args.client or args.mapping_config:
            with SessionLocal() as db:
                mapping_config = MappingConfigRepository(db).get_active(
                    name=args.mapping_config,
                    client_name=args.client,
                )

    try:
        if args.execute:
            report = service.execute(
                content=content,
                filename=args.file.name,
                store=store,
                skip_duplicates=args.skip_duplicates,
                batch_size=args.batch_size,
                mapping_config=mapping_config,
                manual_mapping=overrides,
                context=context,
            )
        else:
            report = service.validate(
                content=content,
                filename=args.file.name,
                store=store,
                mapping_config=mapping_config,
                manual_mapping=overrides,
                context=context,
            )
    except MappingError as exc:
        print(json.dumps(exc.to_dict(), indent=2))
        return EXIT_BAD_INPUT
    except FormatError as exc:
        print(json.dumps({"message": str(exc)}, indent=2))
        return EXIT_BAD_INPUT

    payload = report_to_dict(report)
    if args.save_mapping and report.status != ImportStatus.MAPPING_FAILED:
        _save_mapping(name=args.save_mapping, client_name=args.client, field_mapping=report.field_mapping)
        payload["saved_mapping"] = args.save_mapping

    print(json.dumps(payload, indent=2))
    if not report.success or (not args.execute and not report.is_valid):
        return EXIT_FAILED
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
