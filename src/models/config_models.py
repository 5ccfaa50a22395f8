from __future__ import annotations

from dataclasses import dataclass

"""Config dataclasses.

Kept separate from the loader so services can type against them without
importing YAML/jsonschema.
"""


@dataclass(frozen=True)
class DatabaseConfig:
    """Backend connection fallback values.

    Environment variables take precedence (see ``src.config.loader.resolve_dsn``).
    """
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None


@dataclass(frozen=True)
class AppConfig:
    """Root configuration object."""
    staging_directory: str  # local durable storage for staged uploads / session cache
    app_origin: str  # public origin used to build product QR links
    report_directory: str = "./reports"  # validation report CSV output
    critical_days_threshold: int = 30  # default alert window, overridable via settings table
    timezone: str = "UTC"  # "today" for days-until-expiration
    database: DatabaseConfig = DatabaseConfig()
