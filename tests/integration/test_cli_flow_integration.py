from __future__ import annotations

import json
from pathlib import Path

from src.cli import main as cli_main
from src.services.status import today_in
from src.storage.local_store import LocalStore

"""End-to-end CLI flow against the in-memory backend: upload -> validate -> sync -> list."""


def _out(capsys) -> str:
    return capsys.readouterr().out


def test_clients_upload_validate_sync(write_config: Path, clients_csv: Path, cli_backend, capsys):
    assert cli_main(["upload", "clients", str(clients_csv)]) == 0
    out = _out(capsys)
    assert "INFO clients: 2 rows, 4 columns staged from clientes.csv" in out
    staged = json.loads(Path("staging/clients_file_data.json").read_text(encoding="utf-8"))
    assert staged["fileName"] == "clientes.csv" and staged["totalRows"] == 2

    assert cli_main(["validate", "clients", "--export"]) == 0
    out = _out(capsys)
    assert "INFO Validación completada exitosamente. 2 filas procesadas." in out
    assert "WARN Fila 3: Dirección vacía (Columna C)" in out
    assert "SUMMARY action=validate domain=clients rows=2 errors=0 warnings=1" in out
    report = Path("reports") / f"validacion_clients_{today_in('UTC').isoformat()}.csv"
    assert report.exists()

    assert cli_main(["sync", "clients"]) == 0
    out = _out(capsys)
    assert "INFO 2 clients synced" in out
    assert "SUMMARY action=sync domain=clients synced=2 skipped=0 duplicates=0" in out
    assert set(cli_backend.tables["clients"]) == {(30712345679,), (20123456783,)}

    # 再同期しても行は増えない
    assert cli_main(["sync", "clients"]) == 0
    assert len(cli_backend.tables["clients"]) == 2


def test_products_sync_then_list_and_qr(write_config: Path, products_csv: Path, cli_backend, capsys):
    assert cli_main(["upload", "products", str(products_csv)]) == 0
    assert cli_main(["sync", "products"]) == 0
    _out(capsys)

    assert cli_main(["list", "products"]) == 0
    lines = _out(capsys).splitlines()
    p2 = next(line for line in lines if line.startswith("INFO P-002"))
    assert "estado=VENCIDO" in p2 and "alerta=critical" in p2
    assert "SUMMARY action=list domain=products records=2" in lines

    assert cli_main(["list", "products", "--status", "VIGENTE"]) == 0
    assert "records=1" in _out(capsys)

    assert cli_main(["qr", "P-001"]) == 0
    assert "INFO QR link for P-001: https://tracker.example.com/product/P-001" in _out(capsys)
    assert cli_backend.tables["products"][("P-001",)]["qr_generado"] is True

    assert cli_main(["qr", "NOPE"]) == 1
    assert "ERROR qr: product not found: NOPE" in _out(capsys)


def test_validation_errors_exit_2(write_config: Path, temp_workdir: Path, capsys):
    f = temp_workdir / "data" / "clientes.csv"
    f.write_text("Razón Social,CUIT,Dirección,Email\n,123,x,a@b.com\n", encoding="utf-8")
    assert cli_main(["upload", "clients", str(f)]) == 0
    assert cli_main(["validate", "clients"]) == 2
    out = _out(capsys)
    assert "ERROR Fila 2: CUIT debe tener 11 dígitos (Columna B)" in out
    assert "ERROR Fila 2: Razón Social vacía (Columna A)" in out
    assert "Validación completada" not in out


def test_sync_records_analytics_for_signed_in_user(write_config: Path, clients_csv: Path, cli_backend):
    LocalStore(Path("staging")).put_json("google_user", {"access_token": "tok", "id": "u-1"})
    assert cli_main(["upload", "clients", str(clients_csv)]) == 0
    assert cli_main(["sync", "clients"]) == 0
    assert cli_main(["validate", "clients"]) == 0
    actions = [(a[0], a[1], a[2]) for a in cli_backend.analytics]
    assert actions == [("u-1", "sync", "clients"), ("u-1", "validation", "clients")]


def test_settings_and_signout(write_config: Path, cli_backend, capsys):
    assert cli_main(["settings", "--set", "CRITICAL_DAYS_THRESHOLD=45"]) == 0
    out = _out(capsys)
    assert "INFO settings saved: CRITICAL_DAYS_THRESHOLD" in out
    assert "INFO CRITICAL_DAYS_THRESHOLD=45" in out
    assert cli_backend.tables["settings"][("CRITICAL_DAYS_THRESHOLD",)]["value"] == "45"

    assert cli_main(["settings", "--set", "NOPE=1"]) == 1
    assert cli_main(["settings", "--set", "sin-igual"]) == 1

    LocalStore(Path("staging")).put_json("google_user", {"access_token": "tok"})
    assert cli_main(["signout"]) == 0
    assert "INFO signed out" in _out(capsys)
    assert not Path("staging/google_user.json").exists()


def test_list_without_backend_is_empty(write_config: Path, capsys):
    assert cli_main(["list", "clients"]) == 0
    out = _out(capsys)
    assert "WARN backend not configured" in out
    assert "SUMMARY action=list domain=clients records=0" in out


def test_clear_staged_data(write_config: Path, clients_csv: Path, capsys):
    assert cli_main(["upload", "clients", str(clients_csv)]) == 0
    assert cli_main(["clear", "clients"]) == 0
    assert "INFO staged clients data removed" in _out(capsys)
    assert cli_main(["validate", "clients"]) == 1
    assert "ERROR no staged clients data" in _out(capsys)


def test_debug_flag(write_config: Path, capsys):
    assert cli_main(["--debug", "clear", "products"]) == 0
    assert "DEBUG debug mode enabled" in _out(capsys)


def test_staged_dataset_without_rows_is_not_usable(write_config: Path, capsys):
    LocalStore(Path("staging")).put_json(
        "clients_file_data", {"headers": ["Razón Social", "CUIT"], "rows": [], "fileName": "c.csv", "totalRows": 0}
    )
    assert cli_main(["validate", "clients"]) == 1
    assert "ERROR no staged clients data; upload a file first" in _out(capsys)
    assert cli_main(["sync", "clients"]) == 1
    assert "ERROR no staged clients data to sync" in _out(capsys)
