from __future__ import annotations

import os
from dataclasses import dataclass
from typing import List

DEFAULT_DATABASE_URL = "sqlite:///./data/blog.db"
LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


@dataclass(frozen=True)
class Settings:
    """
    Application settings loaded from environment variables.

    Env vars:
    - DATABASE_URL: 'sqlite:///relative/path.db', 'sqlite:////absolute/path.db' or a bare
      file path. Default 'sqlite:///./data/blog.db'
    - HOST: interface to bind (default: 0.0.0.0)
    - PORT: listening port (default: 8000)
    - DB_POOL_SIZE: maximum number of pooled connections (default: 5)
    - DB_ACQUIRE_TIMEOUT: seconds to wait for a free connection (default: 3)
    - CORS_ALLOW_ORIGINS: comma-separated list of allowed origins; '*' by default
    - LOG_LEVEL: CRITICAL, ERROR, WARNING, INFO or DEBUG; anything else means INFO
    - SEED_SAMPLE_POSTS: 'true' to insert sample posts into an empty table (default: false)
    """

    database_url: str
    host: str
    port: int
    db_pool_size: int
    db_acquire_timeout: float
    cors_allow_origins: List[str]
    log_level: str
    seed_sample_posts: bool


def _get_env(name: str, default: str) -> str:
    value = os.getenv(name, default)
    if value is None or value == "":
        return default
    return value


def _parse_bool(value: str, default: bool = False) -> bool:
    v = value.strip().lower()
    if v in {"1", "true", "yes", "on"}:
        return True
    if v in {"0", "false", "no", "off"}:
        return False
    return default


def _parse_int(value: str, default: int, minimum: int) -> int:
    try:
        parsed = int(value.strip())
    except ValueError:
        return default
    return parsed if parsed >= minimum else default


def _parse_float(value: str, default: float) -> float:
    try:
        parsed = float(value.strip())
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _parse_origins(origins_value: str) -> List[str]:
    """
    Parse CORS origins from env. Supports:
    - '*' to allow all origins
    - Comma-separated list of origins
    """
    value = origins_value.strip()
    if value == "*":
        return ["*"]
    return [o.strip() for o in value.split(",") if o.strip()]


def _parse_log_level(value: str, default: str = "INFO") -> str:
    level = value.strip().upper()
    return level if level in LOG_LEVELS else default


def _parse_database_url(value: str) -> str:
    """Accept a bare file path as shorthand for a sqlite URL."""
    url = value.strip()
    if url.startswith("sqlite:") and not url.startswith("sqlite://"):
        return f"sqlite:///{url[len('sqlite:'):]}"
    if "://" not in url:
        return f"sqlite:///{url}"
    return url


# PUBLIC_INTERFACE
def get_settings() -> Settings:
    """Return application settings loaded from environment variables."""
    cors_raw = _get_env("CORS_ALLOW_ORIGINS", "*")

    return Settings(
        database_url=_parse_database_url(_get_env("DATABASE_URL", DEFAULT_DATABASE_URL)),
        host=_get_env("HOST", "0.0.0.0").strip(),
        port=_parse_int(_get_env("PORT", "8000"), 8000, minimum=1),
        db_pool_size=_parse_int(_get_env("DB_POOL_SIZE", "5"), 5, minimum=1),
        db_acquire_timeout=_parse_float(_get_env("DB_ACQUIRE_TIMEOUT", "3"), 3.0),
        cors_allow_origins=_parse_origins(cors_raw),
        log_level=_parse_log_level(_get_env("LOG_LEVEL", "INFO")),
        seed_sample_posts=_parse_bool(_get_env("SEED_SAMPLE_POSTS", "false"), False),
    )
