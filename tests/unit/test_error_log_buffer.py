from __future__ import annotations
import json
from pathlib import Path
from src.logging.error_log import ErrorRecord, ErrorLogBuffer

KEYS = {"timestamp", "file", "domain", "row", "error_type", "message"}


def test_error_record_creation_and_json_line():
    rec = ErrorRecord.create(
        file="clientes.xlsx",
        domain="clients",
        row=-1,
        error_type="UPSERT_ERROR",
        message="duplicate key",
    )
    data = json.loads(rec.to_json_line())
    assert data["file"] == "clientes.xlsx"
    assert data["domain"] == "clients"
    assert data["row"] == -1
    assert data["error_type"] == "UPSERT_ERROR"
    assert data["timestamp"].endswith("Z")
    assert set(data.keys()) == KEYS


def test_error_record_keeps_non_ascii():
    rec = ErrorRecord.create("productos.csv", "products", 3, "PARSE_ERROR", "codificación inválida")
    assert "codificación" in rec.to_json_line()


def test_error_log_buffer_flush(temp_workdir: Path):
    buf = ErrorLogBuffer()
    buf.append(ErrorRecord.create("f1.csv", "clients", -1, "PARSE_ERROR", "bad"))
    buf.append(ErrorRecord.create("f1.csv", "clients", -1, "UPSERT_ERROR", "dup"))
    path = buf.flush()
    assert path is not None and path.exists()
    assert path.parent == Path("logs")
    assert path.name.startswith("errors-") and path.suffix == ".log"
    lines = path.read_text(encoding="utf-8").strip().splitlines()
    assert len(lines) == 2
    for raw in lines:
        assert set(json.loads(raw).keys()) == KEYS
    # flush 後バッファクリア
    assert len(buf) == 0


def test_error_log_buffer_empty_flush_writes_nothing(temp_workdir: Path):
    buf = ErrorLogBuffer(logs_dir=temp_workdir / "other")
    assert buf.flush() is None
    assert not (temp_workdir / "other").exists()


def test_error_log_buffer_multiple_flushes(temp_workdir: Path):
    buf = ErrorLogBuffer()
    buf.append(ErrorRecord.create("f.csv", "products", -1, "UPSERT_ERROR", "dup"))
    path = buf.flush()
    size1 = path.stat().st_size
    buf.append(ErrorRecord.create("f.csv", "products", -1, "UPSERT_ERROR", "dup2"))
    path2 = buf.flush()
    assert path == path2
    assert path2.stat().st_size > size1
