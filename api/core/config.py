"""
Runtime settings read from the environment.

Settings are loaded once when the app is created (`main.create_app`) and kept
on `app.state.settings`. Nothing re-reads the environment after startup.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from urllib.parse import parse_qsl, quote, urlencode, urlsplit, urlunsplit

DEFAULT_PORT = 3000
DEFAULT_UPLOAD_DIR = "public/uploads"
DEFAULT_MAX_UPLOAD_BYTES = 2 * 1024 * 1024  # 2 MiB
DEFAULT_MAX_UPLOAD_FILES = 5


def _env_str(name: str, default: str) -> str:
    return os.environ.get(name, default).strip() or default


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    return raw.lower() not in {"0", "false", "no", "off"}


def _sanitize_database_url(url: str) -> str:
    parts = urlsplit(url)
    if not parts.query:
        return url

    params = [(k, v) for (k, v) in parse_qsl(parts.query, keep_blank_values=True) if k != "sslmode"]
    query = urlencode(params)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, query, parts.fragment))


def database_url() -> str:
    """
    DATABASE_URL wins when set; otherwise the DSN is assembled from
    DB_HOST / DB_PORT / DB_USER / DB_PASSWORD / DB_NAME.
    """
    url = os.environ.get("DATABASE_URL", "").strip()
    if url:
        return _sanitize_database_url(url)

    host = _env_str("DB_HOST", "localhost")
    port = _env_int("DB_PORT", 5432)
    user = quote(_env_str("DB_USER", "postgres"), safe="")
    password = quote(os.environ.get("DB_PASSWORD", ""), safe="")
    name = _env_str("DB_NAME", "users_app")

    credentials = f"{user}:{password}" if password else user
    return f"postgresql://{credentials}@{host}:{port}/{name}"


@dataclass(frozen=True)
class Settings:
    host: str
    port: int
    database_url: str
    db_pool_min_size: int
    db_pool_max_size: int
    db_command_timeout: float
    db_create_schema: bool
    upload_dir: str
    max_upload_bytes: int
    max_upload_files: int
    log_level: str


def load_settings() -> Settings:
    max_upload_bytes = _env_int("MAX_UPLOAD_BYTES", DEFAULT_MAX_UPLOAD_BYTES)
    if max_upload_bytes <= 0:
        raise RuntimeError("Invalid MAX_UPLOAD_BYTES. It must be > 0.")

    max_upload_files = _env_int("MAX_UPLOAD_FILES", DEFAULT_MAX_UPLOAD_FILES)
    if max_upload_files <= 0:
        raise RuntimeError("Invalid MAX_UPLOAD_FILES. It must be > 0.")

    pool_min = max(_env_int("DB_POOL_MIN_SIZE", 1), 0)
    pool_max = max(_env_int("DB_POOL_MAX_SIZE", 10), 1)

    return Settings(
        host=_env_str("HOST", "0.0.0.0"),
        port=_env_int("PORT", DEFAULT_PORT),
        database_url=database_url(),
        db_pool_min_size=min(pool_min, pool_max),
        db_pool_max_size=pool_max,
        db_command_timeout=_env_float("DB_COMMAND_TIMEOUT", 30.0),
        db_create_schema=_env_bool("DB_CREATE_SCHEMA", True),
        upload_dir=_env_str("UPLOAD_DIR", DEFAULT_UPLOAD_DIR),
        max_upload_bytes=max_upload_bytes,
        max_upload_files=max_upload_files,
        log_level=_env_str("LOG_LEVEL", "INFO").upper(),
    )


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
