from __future__ import annotations
import pytest
from pathlib import Path
from src.config.loader import ConfigurationError, load_config, resolve_dsn
from src.models.config_models import DatabaseConfig


def test_load_config_success(write_config: Path):
    cfg = load_config(write_config)
    assert cfg.staging_directory == "./staging"
    assert cfg.report_directory == "./reports"
    # 末尾スラッシュは除去される
    assert cfg.app_origin == "https://tracker.example.com"
    assert cfg.critical_days_threshold == 30
    assert cfg.timezone == "UTC"
    assert cfg.database == DatabaseConfig()


def test_load_config_defaults(temp_workdir: Path):
    path = temp_workdir / "config" / "compliance.yml"
    path.write_text("staging_directory: ./s\napp_origin: http://localhost:3000\n", encoding="utf-8")
    cfg = load_config(path)
    assert cfg.report_directory == "./reports"
    assert cfg.critical_days_threshold == 30
    assert cfg.timezone == "UTC"


def test_load_config_missing_file(temp_workdir: Path):
    missing = temp_workdir / "config" / "not_exists.yml"
    with pytest.raises(ConfigurationError):
        load_config(missing)


def test_load_config_missing_required(write_config: Path):
    text = write_config.read_text(encoding="utf-8").replace("app_origin: https://tracker.example.com/\n", "")
    write_config.write_text(text, encoding="utf-8")
    with pytest.raises(ConfigurationError) as e:
        load_config(write_config)
    assert "config validation failed" in str(e.value) and "required property" in str(e.value)


def test_load_config_extra_field(write_config: Path):
    text = write_config.read_text(encoding="utf-8") + "\nextra_field: not_allowed\n"
    write_config.write_text(text, encoding="utf-8")
    with pytest.raises(ConfigurationError) as e:
        load_config(write_config)
    assert "config validation failed" in str(e.value)


def test_load_config_rejects_non_http_origin(write_config: Path):
    text = write_config.read_text(encoding="utf-8").replace("https://tracker.example.com/", "tracker.example.com")
    write_config.write_text(text, encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_config(write_config)


def test_load_config_invalid_yaml(temp_workdir: Path):
    path = temp_workdir / "config" / "compliance.yml"
    path.write_text("staging_directory: [unclosed\n", encoding="utf-8")
    with pytest.raises(ConfigurationError) as e:
        load_config(path)
    assert "invalid yaml" in str(e.value)


def test_load_config_database_section(write_config: Path):
    text = write_config.read_text(encoding="utf-8") + (
        "database:\n  host: db.local\n  port: 6543\n  user: app\n  password: secret\n  database: tracker\n"
    )
    write_config.write_text(text, encoding="utf-8")
    cfg = load_config(write_config)
    assert cfg.database.host == "db.local"
    assert cfg.database.port == 6543


def test_resolve_dsn_not_configured(temp_workdir: Path):
    with pytest.raises(ConfigurationError) as e:
        resolve_dsn(DatabaseConfig())
    assert "backend not configured" in str(e.value)


def test_resolve_dsn_env_url_wins(temp_workdir: Path, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "postgresql://u:p@envhost/db")
    assert resolve_dsn(DatabaseConfig(dsn="postgresql://cfg/db", host="cfg")) == "postgresql://u:p@envhost/db"


def test_resolve_dsn_config_dsn(temp_workdir: Path):
    assert resolve_dsn(DatabaseConfig(dsn="postgresql://cfg/db")) == "postgresql://cfg/db"


def test_resolve_dsn_from_parts(temp_workdir: Path, monkeypatch):
    monkeypatch.setenv("PGUSER", "envuser")
    dsn = resolve_dsn(DatabaseConfig(host="db.local", port=6543, user="app", password="pw", database="tracker"))
    assert dsn == "host=db.local port=6543 user=envuser dbname=tracker password=pw"


def test_resolve_dsn_without_password(temp_workdir: Path):
    dsn = resolve_dsn(DatabaseConfig(host="db.local"))
    assert dsn == "host=db.local port=5432 user=postgres dbname=postgres"


def test_load_config_rejects_unknown_timezone(write_config: Path):
    text = write_config.read_text(encoding="utf-8").replace("timezone: UTC", "timezone: Nowhere/City")
    write_config.write_text(text, encoding="utf-8")
    with pytest.raises(ConfigurationError) as e:
        load_config(write_config)
    assert "invalid timezone: Nowhere/City" in str(e.value)


def test_load_config_accepts_named_timezone(write_config: Path):
    text = write_config.read_text(encoding="utf-8").replace("timezone: UTC", "timezone: America/Argentina/Buenos_Aires")
    write_config.write_text(text, encoding="utf-8")
    assert load_config(write_config).timezone == "America/Argentina/Buenos_Aires"
