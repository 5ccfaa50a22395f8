from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from src.models.config_models import AppConfig, DatabaseConfig

"""Config loader.

Responsibilities:
- Load YAML ``config/compliance.yml``
- Validate against ``config_schema.json`` (shipped next to this module)
- Apply defaults (report_directory, critical_days_threshold, timezone)
- Reject timezone names that zoneinfo cannot resolve
- Resolve the backend DSN from environment variables and the database section
"""

__all__ = [
    "ConfigurationError",
    "DEFAULT_CONFIG_PATH",
    "SCHEMA_PATH",
    "load_config",
    "resolve_dsn",
]

SCHEMA_PATH = Path(__file__).with_name("config_schema.json")
DEFAULT_CONFIG_PATH = Path("config/compliance.yml")

DEFAULT_REPORT_DIRECTORY = "./reports"
DEFAULT_CRITICAL_DAYS_THRESHOLD = 30
DEFAULT_TIMEZONE = "UTC"


class ConfigurationError(Exception):
    """Configuration missing or invalid, or backend not configured."""


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against the JSON schema.

    Raises:
        ConfigurationError: schema file missing or not JSON, or config data
            violating the schema (missing required keys, wrong types, extra
            keys).
    """
    if not SCHEMA_PATH.exists():
        raise ConfigurationError(f"config schema not found: {SCHEMA_PATH}")

    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigurationError(f"config validation failed: {e.message}") from e


def load_config(path: Path = DEFAULT_CONFIG_PATH) -> AppConfig:
    if not path.exists():
        raise ConfigurationError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"invalid yaml: {e}") from e

    _validate_config_schema(data)

    timezone = data.get("timezone", DEFAULT_TIMEZONE)
    try:
        ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ConfigurationError(f"invalid timezone: {timezone}") from e

    db_raw = data.get("database") or {}
    db = DatabaseConfig(
        host=db_raw.get("host"),
        port=db_raw.get("port"),
        user=db_raw.get("user"),
        password=db_raw.get("password"),
        database=db_raw.get("database"),
        dsn=db_raw.get("dsn"),
    )
    return AppConfig(
        staging_directory=data["staging_directory"],
        app_origin=str(data["app_origin"]).rstrip("/"),
        report_directory=data.get("report_directory", DEFAULT_REPORT_DIRECTORY),
        critical_days_threshold=data.get("critical_days_threshold", DEFAULT_CRITICAL_DAYS_THRESHOLD),
        timezone=timezone,
        database=db,
    )


def resolve_dsn(db_cfg: DatabaseConfig) -> str:
    """Resolve the backend connection string.

    Priority:
        1. ``DATABASE_URL`` / ``PGDSN`` environment variables (whole DSN)
        2. ``database.dsn`` in the config file
        3. Individual ``PGHOST`` / ``PGPORT`` / ``PGUSER`` / ``PGPASSWORD`` /
           ``PGDATABASE`` variables, falling back to the ``database`` section

    Raises:
        ConfigurationError: when neither a DSN nor a host is configured
    """
    dsn = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or db_cfg.dsn
    if dsn:
        return dsn

    host = os.getenv("PGHOST") or db_cfg.host
    if not host:
        raise ConfigurationError("backend not configured (set DATABASE_URL or database.host)")
    port = os.getenv("PGPORT") or (str(db_cfg.port) if db_cfg.port else "5432")
    user = os.getenv("PGUSER") or db_cfg.user or "postgres"
    password = os.getenv("PGPASSWORD") or db_cfg.password or ""
    database = os.getenv("PGDATABASE") or db_cfg.database or "postgres"
    dsn = f"host={host} port={port} user={user} dbname={database}"
    if password:
        dsn += f" password={password}"
    return dsn
