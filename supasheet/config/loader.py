from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError as SchemaValidationError

from ..errors import ConfigError

"""Config loader.

Responsibilities:
- Load YAML (config/supasheet.yml by default)
- Validate against config_schema.json (additionalProperties: false)
- Apply defaults (max_upload_mb=10, sql_function=exec_sql ...)
- Resolve connection settings with environment variables taking precedence
"""

__all__ = [
    "ConfigError",
    "DEFAULT_CONFIG_PATH",
    "DatabaseConfig",
    "SupabaseConfig",
    "Settings",
    "load_config",
    "resolve_supabase_credentials",
    "resolve_dsn",
    "validate_supabase_url",
]

DEFAULT_CONFIG_PATH = Path("config/supasheet.yml")
SCHEMA_PATH = Path(__file__).with_name("config_schema.json")

DEFAULT_MAX_UPLOAD_MB = 10


@dataclass(frozen=True)
class DatabaseConfig:
    """Direct PostgreSQL connection settings (fallback for PG* / DATABASE_URL)."""
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class SupabaseConfig:
    """Project URL + API key (fallback for SUPABASE_URL / SUPABASE_KEY)."""
    url: str | None = None
    key: str | None = None


@dataclass(frozen=True)
class Settings:
    backend: str = "supabase"
    supabase: SupabaseConfig = field(default_factory=SupabaseConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    schema: str = "public"
    sql_function: str = "exec_sql"
    max_upload_mb: float = DEFAULT_MAX_UPLOAD_MB
    na_strings: list[str] = field(default_factory=list)
    error_log_dir: str = "./logs"

    @property
    def max_upload_bytes(self) -> int:
        return int(self.max_upload_mb * 1024 * 1024)


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the bundled JSON schema.

    Raises:
        ConfigError: the schema file is missing / not valid JSON, or the config
            data fails validation (unknown keys, wrong types ...).
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")

    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except SchemaValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def load_config(path: Path | None = None, *, required: bool = False) -> Settings:
    """Load settings from YAML.

    When ``path`` does not exist, defaults are returned unless ``required`` is
    set (an explicitly given --config must exist).
    """
    path = path if path is not None else DEFAULT_CONFIG_PATH
    if not path.exists():
        if required:
            raise ConfigError(f"config file not found: {path}")
        return Settings()
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"config root must be a mapping: {path}")

    _validate_config_schema(data)

    sb_raw = data.get("supabase") or {}
    db_raw = data.get("database") or {}
    return Settings(
        backend=data.get("backend", "supabase"),
        supabase=SupabaseConfig(url=sb_raw.get("url"), key=sb_raw.get("key")),
        database=DatabaseConfig(
            host=db_raw.get("host"),
            port=db_raw.get("port"),
            user=db_raw.get("user"),
            password=db_raw.get("password"),
            database=db_raw.get("database"),
            dsn=db_raw.get("dsn"),
        ),
        schema=data.get("schema", "public"),
        sql_function=data.get("sql_function", "exec_sql"),
        max_upload_mb=data.get("max_upload_mb", DEFAULT_MAX_UPLOAD_MB),
        na_strings=list(data.get("na_strings") or []),
        error_log_dir=data.get("error_log_dir", "./logs"),
    )


def validate_supabase_url(url: str) -> str:
    url = url.strip()
    if not url.startswith("https://") or "supabase.co" not in url:
        raise ConfigError(f"invalid Supabase URL format: {url}")
    return url.rstrip("/")


def resolve_supabase_credentials(settings: Settings) -> tuple[str, str]:
    """Return (url, key); SUPABASE_URL / SUPABASE_KEY win over the config file."""
    url = os.getenv("SUPABASE_URL") or settings.supabase.url
    key = os.getenv("SUPABASE_KEY") or settings.supabase.key
    if not url or not key:
        raise ConfigError("Supabase URL and API key are both required (SUPABASE_URL / SUPABASE_KEY)")
    return validate_supabase_url(url), key.strip()


def resolve_dsn(settings: Settings) -> str:
    """Build a libpq DSN.

    Priority:
        1. DATABASE_URL / PGDSN environment variables, then database.dsn
        2. PGHOST / PGPORT / PGUSER / PGPASSWORD / PGDATABASE
        3. database section of the config file
    """
    db_cfg = settings.database
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn:
        return dsn
    host = os.getenv("PGHOST", db_cfg.host or "localhost")
    port = os.getenv("PGPORT", str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER", db_cfg.user or "postgres")
    password = os.getenv("PGPASSWORD", db_cfg.password or "")
    database = os.getenv("PGDATABASE", db_cfg.database or "postgres")
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn
