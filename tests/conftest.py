# Shared pytest fixtures
from __future__ import annotations

import copy
import re
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import pytest

from src.logging.init import reset_logging

_UPSERT_RE = re.compile(r'INSERT INTO "(\w+)" \((.+?)\) VALUES %s ON CONFLICT \((.+?)\)')


def _names(sql_list: str) -> list[str]:
    return [c.strip().strip('"') for c in sql_list.split(",")]


class FakeBackend:
    """In-memory stand-in for the Postgres tables the services touch.

    Rows are dicts keyed by the conflict-key tuple. BEGIN snapshots the tables,
    ROLLBACK restores the snapshot.
    """

    def __init__(self) -> None:
        self.tables: dict[str, dict[tuple, dict[str, Any]]] = {"clients": {}, "products": {}, "settings": {}}
        self.analytics: list[tuple] = []
        self.scans: list[tuple] = []
        self.statements: list[str] = []
        self.fail_upsert: Exception | None = None
        self._snapshot: dict | None = None

    def cursor(self) -> FakeCursor:
        return FakeCursor(self)

    def begin(self) -> None:
        self._snapshot = copy.deepcopy(self.tables)

    def commit(self) -> None:
        self._snapshot = None

    def rollback(self) -> None:
        if self._snapshot is not None:
            self.tables = self._snapshot
        self._snapshot = None

    def upsert(self, sql: str, rows: list[tuple]) -> None:
        if self.fail_upsert is not None:
            raise self.fail_upsert
        m = _UPSERT_RE.search(sql)
        assert m, sql
        table, columns, conflict = m.group(1), _names(m.group(2)), _names(m.group(3))
        target = self.tables.setdefault(table, {})
        seen: set[tuple] = set()
        for r in rows:
            rec = dict(zip(columns, r))
            key = tuple(rec[c] for c in conflict)
            if key in seen:
                raise RuntimeError("ON CONFLICT DO UPDATE command cannot affect row a second time")
            seen.add(key)
            target[key] = {**target.get(key, {}), **rec}

    def rows(self, table: str) -> list[dict[str, Any]]:
        return list(self.tables.get(table, {}).values())


class FakeCursor:
    def __init__(self, backend: FakeBackend) -> None:
        self.backend = backend
        self.description: list[tuple] | None = None
        self.rowcount = -1
        self._result: list[tuple] = []

    def _select(self, rows: list[dict[str, Any]]) -> None:
        cols = sorted({k for r in rows for k in r})
        self.description = [(c,) for c in cols]
        self._result = [tuple(r.get(c) for c in cols) for r in rows]

    def execute(self, sql: str, params: Any = None) -> None:
        b = self.backend
        b.statements.append(sql)
        s = sql.strip()
        if s == "BEGIN":
            b.begin()
        elif s == "COMMIT":
            b.commit()
        elif s == "ROLLBACK":
            b.rollback()
        elif s.startswith("SELECT key, value FROM settings"):
            self._result = [(r["key"], r["value"]) for r in b.rows("settings")]
        elif s.startswith("SELECT * FROM"):
            table = s.split()[3]
            rows = b.rows(table)
            if "WHERE cuit" in s:
                rows = [r for r in rows if r.get("cuit") == params[0]]
            self._select(rows)
        elif s.startswith("UPDATE products SET qr_link"):
            url, version, code = params
            row = b.tables["products"].get((code,))
            if row is None:
                self.rowcount = 0
            else:
                row.update(qr_link=url, qr_generado=True, qr_version=version)
                self.rowcount = 1
        elif s.startswith("INSERT INTO analytics"):
            b.analytics.append(params)
        elif s.startswith("INSERT INTO qr_scans"):
            b.scans.append(params)
        else:
            raise AssertionError(f"unexpected SQL: {sql}")

    def fetchall(self) -> list[tuple]:
        return list(self._result)


@pytest.fixture(autouse=True)
def _fresh_logging() -> Iterator[None]:
    # handler は生成時の sys.stdout を掴むため capsys ごとに作り直す
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        for var in ("DATABASE_URL", "PGDSN", "PGHOST", "PGPORT", "PGUSER", "PGPASSWORD", "PGDATABASE"):
            monkeypatch.delenv(var, raising=False)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """staging_directory: ./staging
report_directory: ./reports
app_origin: https://tracker.example.com/
critical_days_threshold: 30
timezone: UTC
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "compliance.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def fake_backend(monkeypatch) -> FakeBackend:
    backend = FakeBackend()

    def fake_execute_values(cur, sql, argslist, template=None, page_size=100, fetch=False):
        cur.backend.upsert(sql, list(argslist))

    monkeypatch.setattr("src.db.upsert.execute_values", fake_execute_values)
    return backend


@pytest.fixture()
def cli_backend(monkeypatch, fake_backend: FakeBackend) -> FakeBackend:
    """Route the CLI's backend connection to the fake backend."""
    import src.cli.__main__ as cli_module

    @contextmanager
    def fake_connection(cfg):
        yield fake_backend.cursor()

    monkeypatch.setattr(cli_module, "_db_connection", fake_connection)
    return fake_backend


@pytest.fixture()
def clients_csv(temp_workdir: Path) -> Path:
    f = temp_workdir / "data" / "clientes.csv"
    f.write_text(
        "Razón Social,CUIT,Dirección,Email\n"
        "ACME SA,30-71234567-9,Av. Siempre Viva 742,contacto@acme.com\n"
        "Beta SRL,20-12345678-3,,ventas@beta.com\n",
        encoding="utf-8",
    )
    return f


@pytest.fixture()
def products_csv(temp_workdir: Path) -> Path:
    f = temp_workdir / "data" / "productos.csv"
    f.write_text(
        "CODIFICACIÓN,CUIT,TITULAR,ESTADO,VENCIMIENTO\n"
        "P-001,30712345679,ACME SA,VIGENTE,2030-06-30\n"
        "P-002,20123456783,Beta SRL,VENCIDO,2020-01-31\n",
        encoding="utf-8",
    )
    return f
