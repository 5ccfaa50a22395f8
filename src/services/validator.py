from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from ..excel.headers import HeaderIndex, build_header_index, field
from ..models.raw_dataset import RawDataset
from ..models.records import Domain
from ..models.validation import Severity, ValidationFinding

"""Field validator for staged uploads.

Pure functions: a dataset and its domain in, an ordered list of findings out.

Products are validated through the header index (header names vary between
spreadsheet exports). Clients follow a fixed column contract and are validated
by position: A = razón social, B = CUIT, C = dirección, D = email, whatever the
header text says.

Ordering: header-level findings first, then row by row, and within a row in
the fixed field order below. A success finding is placed first only when no
error exists anywhere.
"""

__all__ = [
    "CUIT_DIGITS",
    "PRODUCT_REQUIRED_FIELDS",
    "CLIENT_COLUMNS",
    "FindingCounts",
    "count_cuit_digits",
    "is_blank",
    "row_number_for",
    "summarize_findings",
    "validate_dataset",
    "validate_products",
    "validate_clients",
]

CUIT_DIGITS = 11

_NON_DIGIT = re.compile(r"[^0-9]")

# logical field -> (label shown to the operator, severity when blank)
PRODUCT_REQUIRED_FIELDS: tuple[tuple[str, str, Severity], ...] = (
    ("codificacion", "CODIFICACIÓN", Severity.ERROR),
    ("cuit", "CUIT", Severity.ERROR),
    ("titular", "TITULAR", Severity.WARNING),
    ("estado", "ESTADO", Severity.WARNING),
    ("vencimiento", "VENCIMIENTO", Severity.WARNING),
)

_PRODUCT_BLANK_MESSAGES = {
    "codificacion": "Codificación vacía",
    "cuit": "CUIT vacío",
    "titular": "Titular vacío",
    "estado": "Estado vacío",
    "vencimiento": "Fecha de vencimiento vacía",
}

# position -> logical field, column letter
CLIENT_COLUMNS: tuple[tuple[int, str, str], ...] = (
    (0, "razon_social", "A"),
    (1, "cuit", "B"),
    (2, "domicilio", "C"),
    (3, "email", "D"),
)


@dataclass(frozen=True)
class FindingCounts:
    errors: int
    warnings: int

    @property
    def ok(self) -> bool:
        return self.errors == 0


def is_blank(value: Any) -> bool:
    return value is None or str(value).strip() == ""


def count_cuit_digits(value: Any) -> int:
    return len(_NON_DIGIT.sub("", str(value)))


def row_number_for(row_index: int) -> int:
    """Sheet row number of a zero-based data row (header occupies row 1)."""
    return row_index + 2


def _row_finding(severity: Severity, row_index: int, text: str, field_name: str) -> ValidationFinding:
    n = row_number_for(row_index)
    return ValidationFinding(severity=severity, message=f"Fila {n}: {text}", field=field_name, row_number=n)


def validate_products(dataset: RawDataset, index: HeaderIndex | None = None) -> list[ValidationFinding]:
    index = index or build_header_index(dataset.headers)
    findings: list[ValidationFinding] = []

    for logical, label, _ in PRODUCT_REQUIRED_FIELDS:
        if not index.has(logical):
            findings.append(
                ValidationFinding(
                    severity=Severity.ERROR,
                    message=f"Campo requerido faltante: {label}",
                    field=logical,
                )
            )

    for row_index, row in enumerate(dataset.rows):
        for logical, _, severity in PRODUCT_REQUIRED_FIELDS:
            if is_blank(field(row, index, logical)):
                findings.append(
                    _row_finding(severity, row_index, _PRODUCT_BLANK_MESSAGES[logical], logical)
                )
    return findings


def validate_clients(dataset: RawDataset) -> list[ValidationFinding]:
    findings: list[ValidationFinding] = []

    if len(dataset.headers) < len(CLIENT_COLUMNS):
        findings.append(
            ValidationFinding(
                severity=Severity.ERROR,
                message="El archivo debe tener al menos 4 columnas: Razón Social, CUIT, Dirección, Email",
            )
        )
        return findings

    for row_index in range(dataset.row_count):
        razon_social = dataset.cell(row_index, 0)
        cuit = dataset.cell(row_index, 1)
        direccion = dataset.cell(row_index, 2)
        email = dataset.cell(row_index, 3)

        if is_blank(cuit):
            findings.append(_row_finding(Severity.ERROR, row_index, "CUIT vacío (Columna B)", "cuit"))
        elif count_cuit_digits(cuit) != CUIT_DIGITS:
            findings.append(
                _row_finding(Severity.ERROR, row_index, "CUIT debe tener 11 dígitos (Columna B)", "cuit")
            )

        if is_blank(razon_social):
            findings.append(
                _row_finding(Severity.ERROR, row_index, "Razón Social vacía (Columna A)", "razon_social")
            )

        if is_blank(direccion):
            findings.append(
                _row_finding(Severity.WARNING, row_index, "Dirección vacía (Columna C)", "domicilio")
            )

        if is_blank(email):
            findings.append(_row_finding(Severity.WARNING, row_index, "Email vacío (Columna D)", "email"))
        elif "@" not in str(email):
            findings.append(
                _row_finding(Severity.WARNING, row_index, "Formato de email inválido (Columna D)", "email")
            )
    return findings


def validate_dataset(dataset: RawDataset, domain: Domain | str) -> list[ValidationFinding]:
    """Validate a staged dataset for its domain.

    Returns the ordered findings; a success finding is prepended when there is
    no error-severity finding.
    """
    domain = Domain(domain)
    if domain is Domain.PRODUCTS:
        findings = validate_products(dataset)
    else:
        findings = validate_clients(dataset)

    if not any(f.is_error for f in findings):
        findings.insert(
            0,
            ValidationFinding(
                severity=Severity.SUCCESS,
                message=f"Validación completada exitosamente. {dataset.row_count} filas procesadas.",
            ),
        )
    return findings


def summarize_findings(findings: Sequence[ValidationFinding]) -> FindingCounts:
    return FindingCounts(
        errors=sum(1 for f in findings if f.severity is Severity.ERROR),
        warnings=sum(1 for f in findings if f.severity is Severity.WARNING),
    )
