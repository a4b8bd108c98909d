from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv

load_dotenv()

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@dataclass(frozen=True)
class Settings:
    app_name: str
    app_version: str
    database_url: str
    lock_timeout_seconds: float
    code_prefix: str
    code_suffix: str
    sql_echo: bool
    log_level: str


def _clean(value: str) -> str:
    return value.strip().strip('"').strip("'")


def _get_required_env(name: str) -> str:
    value = _clean(os.getenv(name, ""))
    if not value:
        raise RuntimeError(f"Missing required environment variable: {name}")
    return value


def _get_bool_env(name: str, default: bool = False) -> bool:
    value = _clean(os.getenv(name, ""))
    if not value:
        return default
    return value.lower() in ("1", "true", "yes", "on")


@lru_cache
def get_settings() -> Settings:
    return Settings(
        app_name="Resource Reservations",
        app_version="1.0.0",
        database_url=_get_required_env("DATABASE_URL"),
        lock_timeout_seconds=float(_clean(os.getenv("BOOKINGS_LOCK_TIMEOUT_SECONDS", "30")) or 30),
        code_prefix=_clean(os.getenv("BOOKINGS_CODE_PREFIX", "")),
        code_suffix=_clean(os.getenv("BOOKINGS_CODE_SUFFIX", "")),
        sql_echo=_get_bool_env("BOOKINGS_SQL_ECHO"),
        log_level=_clean(os.getenv("BOOKINGS_LOG_LEVEL", "INFO")).upper() or "INFO",
    )


def configure_logging(level: str | None = None) -> None:
    """Install the root stream handler used by scripts and workers."""
    logging.basicConfig(
        level=(level or get_settings().log_level),
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler()],
    )
