"""
config.py
Runtime settings (environment driven) + logging setup.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

ENV_PREFIX = "ACADEMY_"
DEFAULT_DB_FILE = Path(__file__).with_name("academy.db")
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@dataclass(frozen=True)
class Settings:
    api_base_url: str = "http://127.0.0.1:3000/api"
    db_file: Path = DEFAULT_DB_FILE
    request_timeout: float = 30.0
    max_attempts: int = 3
    backoff_base: float = 1.0
    sync_interval_minutes: float = 3.0
    retry_interval_minutes: float = 2.0
    initial_sync_delay: float = 2.0
    top_n_limit: int = 5
    academy_name: str = "Ledo Sports Academy"
    log_level: str = "INFO"
    host: str = "127.0.0.1"
    port: int = 3000


def _env(name: str) -> str | None:
    value = os.getenv(ENV_PREFIX + name)
    if value is None or not value.strip():
        return None
    return value.strip()


def _env_number(name: str, default, cast):
    raw = _env(name)
    if raw is None:
        return default
    try:
        return cast(raw)
    except ValueError:
        raise ValueError(f"{ENV_PREFIX}{name} must be numeric, got {raw!r}") from None


def load_settings() -> Settings:
    defaults = Settings()
    db_file = _env("DB_FILE")
    settings = Settings(
        api_base_url=(_env("API_URL") or defaults.api_base_url).rstrip("/"),
        db_file=Path(db_file).expanduser().resolve() if db_file else defaults.db_file,
        request_timeout=_env_number("REQUEST_TIMEOUT", defaults.request_timeout, float),
        max_attempts=_env_number("MAX_ATTEMPTS", defaults.max_attempts, int),
        backoff_base=_env_number("BACKOFF_BASE", defaults.backoff_base, float),
        sync_interval_minutes=_env_number("SYNC_INTERVAL", defaults.sync_interval_minutes, float),
        retry_interval_minutes=_env_number("RETRY_INTERVAL", defaults.retry_interval_minutes, float),
        initial_sync_delay=_env_number("INITIAL_SYNC_DELAY", defaults.initial_sync_delay, float),
        top_n_limit=_env_number("TOP_N", defaults.top_n_limit, int),
        academy_name=_env("NAME") or defaults.academy_name,
        log_level=(_env("LOG_LEVEL") or defaults.log_level).upper(),
        host=_env("HOST") or defaults.host,
        port=_env_number("PORT", defaults.port, int),
    )
    if settings.max_attempts < 1:
        raise ValueError(f"{ENV_PREFIX}MAX_ATTEMPTS must be >= 1")
    return settings


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)
