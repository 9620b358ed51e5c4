"""
app/config.py

Application-level configuration helpers.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from db.config import load_env_files


@lru_cache(maxsize=1)
def _load_env_once() -> None:
    """
    Ensure project `.env` files are loaded once before reading app settings.
    """

    load_env_files()


def _get_bool_env(name: str, default: bool) -> bool:
    """
    Read a boolean from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    return raw_value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int_env(name: str, default: int) -> int:
    """
    Read an integer from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return int(raw_value)
    except ValueError:
        return default


def _get_float_env(name: str, default: float) -> float:
    """
    Read a float from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return float(raw_value)
    except ValueError:
        return default


def _get_str_env(name: str, default: str) -> str:
    """
    Read a string from environment variables with fallback.
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return default
    stripped = value.strip()
    return stripped if stripped else default


@dataclass(frozen=True)
class OrderImportSettings:
    """
    Runtime settings for the bulk order import pipeline.
    """

    batch_size: int = 100
    max_batch_size: int = 1000
    max_concurrency: int = 2
    max_error_details: int = 100
    preview_rows: int = 5
    default_currency: str = "MYR"
    default_country_code: str = "60"
    day_first: bool = True
    fuzzy_threshold: float = 0.84
    timeout_seconds: float = 120.0
    batch_grace_seconds: float = 10.0
    max_file_bytes: int = 50 * 1024 * 1024
    log_validation_errors: bool = True

    def clamp_batch_size(self, requested: int | None) -> int:
        if requested is None:
            return self.batch_size
        return max(1, min(self.max_batch_size, requested))


@lru_cache(maxsize=1)
def get_order_import_settings() -> OrderImportSettings:
    """
    Return cached order import settings from environment variables.
    """

    max_batch_size = max(1, _get_int_env("ORDER_IMPORT_MAX_BATCH_SIZE", 1000))
    return OrderImportSettings(
        batch_size=max(1, min(max_batch_size, _get_int_env("ORDER_IMPORT_BATCH_SIZE", 100))),
        max_batch_size=max_batch_size,
        max_concurrency=max(1, _get_int_env("ORDER_IMPORT_MAX_CONCURRENCY", 2)),
        max_error_details=max(1, _get_int_env("ORDER_IMPORT_MAX_ERROR_DETAILS", 100)),
        preview_rows=max(1, _get_int_env("ORDER_IMPORT_PREVIEW_ROWS", 5)),
        default_currency=_get_str_env("ORDER_IMPORT_DEFAULT_CURRENCY", "MYR").upper(),
        default_country_code=_get_str_env("ORDER_IMPORT_DEFAULT_COUNTRY_CODE", "60").lstrip("+"),
        day_first=_get_bool_env("ORDER_IMPORT_DAY_FIRST", True),
        fuzzy_threshold=max(0.0, min(1.0, _get_float_env("ORDER_IMPORT_FUZZY_THRESHOLD", 0.84))),
        timeout_seconds=max(1.0, _get_float_env("ORDER_IMPORT_TIMEOUT_SECONDS", 120.0)),
        batch_grace_seconds=max(0.0, _get_float_env("ORDER_IMPORT_BATCH_GRACE_SECONDS", 10.0)),
        max_file_bytes=max(1, _get_int_env("ORDER_IMPORT_MAX_FILE_BYTES", 50 * 1024 * 1024)),
        log_validation_errors=_get_bool_env("ORDER_IMPORT_LOG_VALIDATION_ERRORS", True),
    )
