"""Environment-driven runtime settings."""

from __future__ import annotations

import os
from dataclasses import dataclass
from decimal import Decimal
from functools import lru_cache
from pathlib import Path


PROJECT_ROOT = Path(__file__).resolve().parents[2]


def _env_str(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip()


def _env_int(name: str, default: int) -> int:
    return int(_env_str(name, str(default)))


def _env_decimal(name: str, default: str) -> Decimal:
    return Decimal(_env_str(name, default))


def _env_bool(name: str, default: bool) -> bool:
    return _env_str(name, "true" if default else "false").lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    app_name: str
    app_version: str
    log_level: str
    database_path: Path
    database_busy_timeout_seconds: float
    admin_token: str | None
    admin_session_ttl_minutes: int
    tax_rate: Decimal
    service_charge_rate: Decimal
    deposit_rate: Decimal
    free_cancellation_hours: int
    check_in_hour: int
    min_nights: int
    max_nights: int
    group_min_rooms: int
    group_max_rooms: int
    search_default_page_size: int
    search_max_page_size: int
    seed_demo_rooms: bool


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Build settings once per process; tests call ``get_settings.cache_clear()``."""
    admin_token = os.getenv("ADMIN_TOKEN")
    return Settings(
        app_name=_env_str("APP_NAME", "Hotel Booking Engine"),
        app_version=_env_str("APP_VERSION", "1.0.0"),
        log_level=_env_str("LOG_LEVEL", "INFO"),
        database_path=Path(
            _env_str("DATABASE_PATH", str(PROJECT_ROOT / "data" / "hotel.db"))
        ),
        database_busy_timeout_seconds=float(_env_str("DATABASE_BUSY_TIMEOUT_SECONDS", "10")),
        admin_token=admin_token.strip() if admin_token and admin_token.strip() else None,
        admin_session_ttl_minutes=_env_int("ADMIN_SESSION_TTL_MINUTES", 480),
        tax_rate=_env_decimal("TAX_RATE", "0.10"),
        service_charge_rate=_env_decimal("SERVICE_CHARGE_RATE", "0.05"),
        deposit_rate=_env_decimal("DEPOSIT_RATE", "0.30"),
        free_cancellation_hours=_env_int("FREE_CANCELLATION_HOURS", 48),
        check_in_hour=_env_int("CHECK_IN_HOUR", 14),
        min_nights=_env_int("MIN_NIGHTS", 1),
        max_nights=_env_int("MAX_NIGHTS", 30),
        group_min_rooms=_env_int("GROUP_MIN_ROOMS", 2),
        group_max_rooms=_env_int("GROUP_MAX_ROOMS", 10),
        search_default_page_size=_env_int("SEARCH_DEFAULT_PAGE_SIZE", 10),
        search_max_page_size=_env_int("SEARCH_MAX_PAGE_SIZE", 100),
        seed_demo_rooms=_env_bool("SEED_DEMO_ROOMS", True),
    )
