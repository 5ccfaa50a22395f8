from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from pathlib import Path

import pandas as pd

from ..models.records import Domain
from ..models.validation import Severity, ValidationFinding

"""Validation report export.

CSV with the fixed columns ``Tipo, Mensaje, Campo, Fila`` (in that order), one
row per finding, named ``validacion_{domain}_{YYYY-MM-DD}.csv``. Values are
quoted as needed so reading the file back yields the same strings.
"""

__all__ = [
    "REPORT_COLUMNS",
    "report_file_name",
    "findings_to_frame",
    "write_validation_report",
    "read_validation_report",
]

REPORT_COLUMNS = ["Tipo", "Mensaje", "Campo", "Fila"]


def report_file_name(domain: Domain | str, on: date) -> str:
    return f"validacion_{Domain(domain).value}_{on.isoformat()}.csv"


def findings_to_frame(findings: Sequence[ValidationFinding]) -> pd.DataFrame:
    records = [
        [
            f.severity.value,
            f.message,
            f.field or "",
            "" if f.row_number is None else str(f.row_number),
        ]
        for f in findings
    ]
    return pd.DataFrame(records, columns=REPORT_COLUMNS)


def write_validation_report(
    findings: Sequence[ValidationFinding],
    directory: Path,
    domain: Domain | str,
    on: date,
) -> Path:
    """Write the report CSV into ``directory`` and return its path.

    Raises:
        ValueError: when there are no findings to export
    """
    if not findings:
        raise ValueError("no validation results to export")
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / report_file_name(domain, on)
    findings_to_frame(findings).to_csv(path, index=False, encoding="utf-8")
    return path


def read_validation_report(path: Path) -> list[ValidationFinding]:
    frame = pd.read_csv(path, dtype=str, keep_default_na=False, encoding="utf-8")
    missing = [c for c in REPORT_COLUMNS if c not in frame.columns]
    if missing:
        raise ValueError(f"report {path.name} missing columns: {missing}")
    findings: list[ValidationFinding] = []
    for tipo, mensaje, campo, fila in frame[REPORT_COLUMNS].itertuples(index=False, name=None):
        findings.append(
            ValidationFinding(
                severity=Severity(tipo),
                message=mensaje,
                field=campo or None,
                row_number=int(fila) if fila else None,
            )
        )
    return findings
