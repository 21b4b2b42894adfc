# backend/softzen/config.py
from __future__ import annotations
import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Dict, List, Optional

from dotenv import load_dotenv

load_dotenv()

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./softzen.db"
DEFAULT_CORS_ORIGINS = "http://localhost:3001,http://127.0.0.1:3001"


def _get_int_env(name: str, default: Optional[int] = None) -> Optional[int]:
    raw = os.getenv(name)
    if raw in (None, ""):
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"Environment variable {name} must be an integer; got {raw!r}") from exc


def _get_float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw in (None, ""):
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"Environment variable {name} must be a number; got {raw!r}") from exc


def _get_bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw in (None, ""):
        return default
    return raw.lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    """Runtime configuration resolved from the environment (and ``.env``)."""

    database_url: str = DEFAULT_DATABASE_URL
    db_echo: bool = False
    db_pool_size: Optional[int] = None
    db_max_overflow: Optional[int] = None
    db_pool_timeout: Optional[int] = None
    auto_create_schema: bool = True

    secret_key: str = "change-me-in-production"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 7 * 24 * 60

    cors_origins: List[str] = field(default_factory=lambda: DEFAULT_CORS_ORIGINS.split(","))

    cache_ttl: float = 300.0
    cache_purge_interval: float = 300.0
    dashboard_cache_ttl: float = 120.0
    catalog_cache_ttl: float = 1800.0
    request_timeout: float = 30.0

    retry_attempts: int = 3
    retry_base_delay: float = 1.0
    retry_multiplier: float = 2.0
    retry_max_delay: float = 5.0

    comments_min_length: int = 10

    log_level: str = "INFO"
    log_json: bool = True

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    def engine_options(self) -> Dict[str, object]:
        """Keyword arguments for :func:`sqlalchemy.ext.asyncio.create_async_engine`."""
        options: Dict[str, object] = {"echo": self.db_echo, "pool_pre_ping": True}
        if self.db_pool_size is not None:
            options["pool_size"] = self.db_pool_size
        if self.db_max_overflow is not None:
            options["max_overflow"] = self.db_max_overflow
        if self.db_pool_timeout is not None:
            options["pool_timeout"] = self.db_pool_timeout
        return options


def settings_from_env() -> Settings:
    origins = os.getenv("CORS_ORIGINS", DEFAULT_CORS_ORIGINS)
    return Settings(
        database_url=os.getenv("ASYNC_DATABASE_URL") or os.getenv("DATABASE_URL") or DEFAULT_DATABASE_URL,
        db_echo=_get_bool_env("DB_ECHO", False),
        db_pool_size=_get_int_env("DB_POOL_SIZE"),
        db_max_overflow=_get_int_env("DB_MAX_OVERFLOW"),
        db_pool_timeout=_get_int_env("DB_POOL_TIMEOUT"),
        auto_create_schema=_get_bool_env("SOFTZEN_AUTO_CREATE_SCHEMA", True),
        secret_key=os.getenv("SECRET_KEY", "change-me-in-production"),
        algorithm=os.getenv("ALGORITHM", "HS256"),
        access_token_expire_minutes=_get_int_env("ACCESS_TOKEN_EXPIRE_MINUTES", 7 * 24 * 60),
        cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
        cache_ttl=_get_float_env("SOFTZEN_CACHE_TTL", 300.0),
        cache_purge_interval=_get_float_env("SOFTZEN_CACHE_PURGE_INTERVAL", 300.0),
        dashboard_cache_ttl=_get_float_env("SOFTZEN_DASHBOARD_CACHE_TTL", 120.0),
        request_timeout=_get_float_env("SOFTZEN_REQUEST_TIMEOUT", 30.0),
        retry_attempts=_get_int_env("SOFTZEN_RETRY_ATTEMPTS", 3),
        retry_base_delay=_get_float_env("SOFTZEN_RETRY_BASE_DELAY", 1.0),
        retry_multiplier=_get_float_env("SOFTZEN_RETRY_MULTIPLIER", 2.0),
        retry_max_delay=_get_float_env("SOFTZEN_RETRY_MAX_DELAY", 5.0),
        comments_min_length=_get_int_env("SOFTZEN_COMMENTS_MIN_LENGTH", 10),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        log_json=_get_bool_env("LOG_JSON", True),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return settings_from_env()
