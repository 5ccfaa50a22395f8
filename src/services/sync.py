from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass, fields
from datetime import date, datetime, timedelta
from typing import Any

import pandas as pd

from ..db.upsert import UpsertError, batch_upsert
from ..excel.headers import HeaderIndex, build_header_index, field
from ..excel.reader import MAX_DATE_YEAR, MIN_DATE_YEAR
from ..logging.error_log import ErrorLogBuffer, ErrorRecord
from ..models.raw_dataset import RawDataset
from ..models.records import ClientRecord, Domain, ProductRecord
from .validator import CUIT_DIGITS, is_blank

"""Sync/upsert bridge: staged dataset -> backend rows.

Flow per call:
1. Map staged rows to ClientRecord / ProductRecord
2. Drop records whose natural key does not normalize (CUIT of 11 digits for
   clients, non-empty codificación for products)
3. Collapse duplicate natural keys (last row wins)
4. One transaction: BEGIN, INSERT ... ON CONFLICT DO UPDATE, COMMIT

A backend rejection rolls the whole batch back and surfaces a single
SyncError. Running the same sync twice leaves the same rows behind.
"""

__all__ = [
    "SyncError",
    "SyncResult",
    "CLIENT_SYNC_COLUMNS",
    "PRODUCT_SYNC_COLUMNS",
    "coerce_date",
    "normalize_cuit",
    "map_client_rows",
    "map_product_rows",
    "dedupe_by_key",
    "sync_clients",
    "sync_dataset",
    "sync_products",
]

logger = logging.getLogger(__name__)

_NON_DIGIT = re.compile(r"[^0-9]")
_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")

# Day zero of the Excel 1900 date system (serial 25569 = 1970-01-01).
# Workbooks using the 1904 system are not detected.
EXCEL_EPOCH = date(1899, 12, 30)

# Columns the upload actually carries; other backend columns (documents,
# certificates, DJC, QR paths) are left untouched on conflict.
CLIENT_SYNC_COLUMNS: tuple[str, ...] = ("cuit", "razon_social", "domicilio_legal", "correo_electronico")
PRODUCT_SYNC_COLUMNS: tuple[str, ...] = tuple(
    f.name
    for f in fields(ProductRecord)
    if f.name not in {"certificates_path", "djc_path", "qr_code_path"}
)

DEFAULT_ESTADO = "VIGENTE"
DEFAULT_ORIGEN = "NACIONAL"


class SyncError(Exception):
    """Backend rejected the batch (nothing from it was committed) or nothing to sync."""


@dataclass(frozen=True)
class SyncResult:
    domain: str
    synced: int  # rows sent to the upsert
    skipped: int  # rows dropped for an invalid natural key
    duplicates: int  # rows collapsed onto a later row with the same key
    elapsed_seconds: float


def normalize_cuit(value: Any) -> int | None:
    """Integer CUIT when stripping non-digits leaves exactly 11 digits, else None."""
    if value is None or isinstance(value, bool):
        return None
    digits = _NON_DIGIT.sub("", str(value))
    if len(digits) != CUIT_DIGITS:
        return None
    number = int(digits)
    return number if number > 0 else None


def _in_range(d: date) -> date | None:
    return d if MIN_DATE_YEAR <= d.year <= MAX_DATE_YEAR else None


def coerce_date(value: Any) -> date | None:
    """Best-effort date from a spreadsheet cell.

    Accepts date/datetime objects, ISO strings, other date strings and Excel
    serial numbers. Years outside [1900, 2100] yield None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return _in_range(value.date())
    if isinstance(value, date):
        return _in_range(value)
    if isinstance(value, (int, float)):
        try:
            return _in_range(EXCEL_EPOCH + timedelta(days=int(value)))
        except (OverflowError, ValueError):
            return None
    text = str(value).strip()
    if not text:
        return None
    try:
        return _in_range(date.fromisoformat(text[:10]))
    except ValueError:
        pass
    parsed = pd.to_datetime(text, errors="coerce")
    if pd.isna(parsed):
        return None
    return _in_range(parsed.date())


def _text(value: Any) -> str | None:
    if is_blank(value):
        return None
    return str(value).strip()


def _int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    match = _LEADING_INT.match(str(value))
    return int(match.group(1)) if match else None


def map_client_rows(dataset: RawDataset, index: HeaderIndex | None = None) -> tuple[list[ClientRecord], int]:
    """Clients from a staged upload.

    CUIT is always read from column B. Razón social, domicilio and email come
    from their headers when present, else from columns A, C and D.

    Returns (records, skipped).
    """
    index = index or build_header_index(dataset.headers)
    positional = {"razon_social": 0, "domicilio": 2, "email": 3}

    def _get(row_index: int, logical: str) -> Any:
        if index.has(logical):
            return field(dataset.rows[row_index], index, logical)
        return dataset.cell(row_index, positional[logical])

    records: list[ClientRecord] = []
    skipped = 0
    for row_index in range(dataset.row_count):
        cuit = normalize_cuit(dataset.cell(row_index, 1))
        razon_social = _text(_get(row_index, "razon_social"))
        if cuit is None or razon_social is None:
            skipped += 1
            continue
        records.append(
            ClientRecord(
                cuit=cuit,
                razon_social=razon_social,
                domicilio_legal=_text(_get(row_index, "domicilio")),
                correo_electronico=_text(_get(row_index, "email")),
            )
        )
    return records, skipped


def map_product_rows(dataset: RawDataset, index: HeaderIndex | None = None) -> tuple[list[ProductRecord], int]:
    """Products from a staged upload. Rows without codificación are skipped.

    Returns (records, skipped).
    """
    index = index or build_header_index(dataset.headers)

    records: list[ProductRecord] = []
    skipped = 0
    for row in dataset.rows:
        def get(logical: str) -> Any:
            return field(row, index, logical)

        codificacion = _text(get("codificacion"))
        if codificacion is None:
            skipped += 1
            continue
        records.append(
            ProductRecord(
                codificacion=codificacion,
                cuit=normalize_cuit(get("cuit")),
                titular=_text(get("titular")),
                tipo_certificacion=_text(get("tipo_certificacion")),
                estado=_text(get("estado")) or DEFAULT_ESTADO,
                en_proceso_renovacion=_text(get("en_proceso_renovacion")),
                direccion_legal=_text(get("direccion_legal")),
                fabricante=_text(get("fabricante")),
                planta_fabricacion=_text(get("planta_fabricacion")),
                origen=_text(get("origen")) or DEFAULT_ORIGEN,
                producto=_text(get("producto")),
                marca=_text(get("marca")),
                modelo=_text(get("modelo")),
                caracteristicas_tecnicas=_text(get("caracteristicas_tecnicas")),
                normas_aplicacion=_text(get("normas_aplicacion")),
                informe_ensayo_nro=_text(get("informe_ensayo_nro")),
                laboratorio=_text(get("laboratorio")),
                ocp_extranjero=_text(get("ocp_extranjero")),
                certificado_extranjero_nro=_text(get("certificado_extranjero_nro")),
                fecha_emision_cert_extranjero=coerce_date(get("fecha_emision_cert_extranjero")),
                disposicion_convenio=_text(get("disposicion_convenio")),
                cod_rubro=_int(get("cod_rubro")),
                cod_subrubro=_int(get("cod_subrubro")),
                nombre_subrubro=_text(get("nombre_subrubro")),
                fecha_emision=coerce_date(get("fecha_emision")),
                fecha_ultima_vigilancia=coerce_date(get("fecha_ultima_vigilancia")),
                vencimiento=coerce_date(get("vencimiento")),
                fecha_cancelacion=coerce_date(get("fecha_cancelacion")),
                motivo_cancelacion=_text(get("motivo_cancelacion")),
            )
        )
    return records, skipped


def dedupe_by_key(records: list[Any], key: str) -> tuple[list[Any], int]:
    """Keep the last record per natural key, in first-seen key order."""
    by_key: dict[Any, Any] = {}
    for record in records:
        by_key[getattr(record, key)] = record
    return list(by_key.values()), len(records) - len(by_key)


def sync_dataset(
    cursor: Any,
    dataset: RawDataset,
    domain: Domain | str,
    error_log: ErrorLogBuffer | None = None,
) -> SyncResult:
    """Upsert a staged dataset into its backend table in one transaction.

    Raises:
        SyncError: no valid record in the dataset, or the backend rejected
            the batch (the transaction is rolled back)
    """
    domain = Domain(domain)
    start = time.time()
    index = build_header_index(dataset.headers)

    if domain is Domain.CLIENTS:
        records, skipped = map_client_rows(dataset, index)
        columns = CLIENT_SYNC_COLUMNS
        key = ClientRecord.NATURAL_KEY
    else:
        records, skipped = map_product_rows(dataset, index)
        columns = PRODUCT_SYNC_COLUMNS
        key = ProductRecord.NATURAL_KEY

    if not records:
        if domain is Domain.CLIENTS:
            raise SyncError("no valid clients found (CUIT of 11 digits and Razón Social required)")
        raise SyncError("no valid products found (codificación required)")

    records, duplicates = dedupe_by_key(records, key)
    if duplicates:
        logger.warning("%s: %d rows share a %s with a later row; the later row wins", domain.value, duplicates, key)
    if skipped:
        logger.info("%s: %d rows skipped for invalid %s", domain.value, skipped, key)

    rows = []
    for record in records:
        data = record.to_row()
        rows.append(tuple(data[c] for c in columns))

    try:
        cursor.execute("BEGIN")
        batch_upsert(cursor, domain.value, columns, rows, conflict_columns=[key])
        cursor.execute("COMMIT")
    except Exception as e:
        try:
            cursor.execute("ROLLBACK")
        except Exception as rollback_e:
            logger.debug("rollback failed: %s", rollback_e)
        if error_log is not None:
            error_log.append(
                ErrorRecord.create(
                    file=dataset.source_file_name,
                    domain=domain.value,
                    row=-1,
                    error_type="UPSERT_ERROR" if isinstance(e, UpsertError) else "TRANSACTION_ERROR",
                    message=str(e),
                )
            )
        raise SyncError(f"error syncing {domain.value}: {e}") from e

    return SyncResult(
        domain=domain.value,
        synced=len(rows),
        skipped=skipped,
        duplicates=duplicates,
        elapsed_seconds=time.time() - start,
    )


def sync_clients(cursor: Any, dataset: RawDataset, error_log: ErrorLogBuffer | None = None) -> SyncResult:
    return sync_dataset(cursor, dataset, Domain.CLIENTS, error_log=error_log)


def sync_products(cursor: Any, dataset: RawDataset, error_log: ErrorLogBuffer | None = None) -> SyncResult:
    return sync_dataset(cursor, dataset, Domain.PRODUCTS, error_log=error_log)
