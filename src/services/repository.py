from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date
from typing import Any

from psycopg2.extras import Json

from ..models.records import ClientRecord, Domain, ProductRecord
from .context import IdentitySession
from .status import AlertSeverity, classify_status, days_until_expiration

"""Backend reads for list/detail views and the append-only activity log.

Reads return model objects; missing-data alerts and derived status are
computed here so every surface (CLI, tests) shows the same thing.
"""

__all__ = [
    "ActivitySummary",
    "ProductOverview",
    "describe_products",
    "filter_clients",
    "filter_products",
    "get_client_by_cuit",
    "list_clients",
    "list_products",
    "list_products_for_client",
    "load_activity",
    "log_action",
    "missing_data_alerts",
]

logger = logging.getLogger(__name__)

RECENT_ACTIVITY_LIMIT = 10

ACTION_SYNC = "sync"
ACTION_VALIDATION = "validation"
ACTION_GENERATION = "generation"


@dataclass(frozen=True)
class ProductOverview:
    product: ProductRecord
    days_until_expiration: int | None
    severity: AlertSeverity
    missing: list[str]


@dataclass(frozen=True)
class ActivitySummary:
    total_syncs: int
    total_validations: int
    total_generations: int
    recent: list[dict[str, Any]]


def _fetch_dicts(cursor: Any) -> list[dict[str, Any]]:
    columns = [d[0] for d in cursor.description]
    return [dict(zip(columns, row, strict=False)) for row in cursor.fetchall()]


def list_clients(cursor: Any) -> list[ClientRecord]:
    cursor.execute("SELECT * FROM clients ORDER BY created_at DESC")
    return [ClientRecord.from_row(r) for r in _fetch_dicts(cursor)]


def list_products(cursor: Any) -> list[ProductRecord]:
    cursor.execute("SELECT * FROM products ORDER BY created_at DESC")
    return [ProductRecord.from_row(r) for r in _fetch_dicts(cursor)]


def get_client_by_cuit(cursor: Any, cuit: int) -> ClientRecord | None:
    cursor.execute("SELECT * FROM clients WHERE cuit = %s", (cuit,))
    rows = _fetch_dicts(cursor)
    return ClientRecord.from_row(rows[0]) if rows else None


def list_products_for_client(cursor: Any, cuit: int) -> list[ProductRecord]:
    cursor.execute("SELECT * FROM products WHERE cuit = %s ORDER BY codificacion", (cuit,))
    return [ProductRecord.from_row(r) for r in _fetch_dicts(cursor)]


def filter_products(
    products: Iterable[ProductRecord], search: str | None = None, status: str | None = None
) -> list[ProductRecord]:
    """Case-insensitive search on codificación / titular, exact match on estado."""
    term = (search or "").strip().lower()
    result = []
    for p in products:
        if term and term not in p.codificacion.lower() and term not in (p.titular or "").lower():
            continue
        if status and p.estado != status:
            continue
        result.append(p)
    return result


def filter_clients(clients: Iterable[ClientRecord], search: str | None = None) -> list[ClientRecord]:
    term = (search or "").strip().lower()
    if not term:
        return list(clients)
    return [
        c for c in clients
        if term in (c.razon_social or "").lower() or term in str(c.cuit)
    ]


def _missing_client_fields(client: ClientRecord) -> list[str]:
    missing = []
    if not client.razon_social:
        missing.append("Razón Social")
    if not client.correo_electronico or not client.correo_electronico.strip():
        missing.append("Correo Electrónico")
    if not client.domicilio_legal:
        missing.append("Domicilio Legal")
    return missing


def _missing_product_fields(product: ProductRecord) -> list[str]:
    checks = (
        (product.titular, "Titular"),
        (product.tipo_certificacion, "Tipo de Certificación"),
        (product.estado, "Estado"),
        (product.vencimiento, "Vencimiento"),
        (product.certificates_path, "Certificados"),
        (product.djc_path, "DJC"),
        (product.qr_code_path, "Código QR"),
    )
    return [label for value, label in checks if not value]


def missing_data_alerts(domain: Domain | str, records: Sequence[Any]) -> dict[str, list[str]]:
    """Natural key (as text) -> labels of the empty fields, for records with gaps only."""
    domain = Domain(domain)
    alerts: dict[str, list[str]] = {}
    for record in records:
        if domain is Domain.CLIENTS:
            missing = _missing_client_fields(record)
            key = str(record.cuit)
        else:
            missing = _missing_product_fields(record)
            key = record.codificacion
        if missing:
            alerts[key] = missing
    return alerts


def describe_products(products: Iterable[ProductRecord], today: date, threshold: int) -> list[ProductOverview]:
    overviews = []
    for p in products:
        days = days_until_expiration(p.vencimiento, today)
        overviews.append(
            ProductOverview(
                product=p,
                days_until_expiration=days,
                severity=classify_status(p.estado, days, threshold),
                missing=_missing_product_fields(p),
            )
        )
    return overviews


def log_action(
    cursor: Any,
    session: IdentitySession | None,
    action_type: str,
    section: str,
    details: dict[str, Any] | None = None,
) -> bool:
    """Append an analytics row for the signed-in operator.

    Without a session nothing is recorded. Backend errors are logged and
    swallowed: activity tracking never fails the action being tracked.
    """
    if session is None or not session.user_id:
        logger.debug("analytics disabled: no signed-in user")
        return False
    try:
        cursor.execute(
            "INSERT INTO analytics (user_id, action_type, section, details) VALUES (%s, %s, %s, %s)",
            (session.user_id, action_type, section, Json(details or {})),
        )
    except Exception as e:
        logger.warning("error logging action %s/%s: %s", action_type, section, e)
        return False
    return True


def load_activity(cursor: Any, session: IdentitySession | None) -> ActivitySummary:
    """Action counts and recent actions for the signed-in operator (empty without a session)."""
    if session is None or not session.user_id:
        return ActivitySummary(0, 0, 0, [])
    cursor.execute(
        "SELECT action_type, count(*) FROM analytics WHERE user_id = %s GROUP BY action_type",
        (session.user_id,),
    )
    counts = {action: int(n) for action, n in cursor.fetchall()}
    cursor.execute(
        "SELECT id, action_type, section, details, created_at FROM analytics "
        "WHERE user_id = %s ORDER BY created_at DESC LIMIT %s",
        (session.user_id, RECENT_ACTIVITY_LIMIT),
    )
    recent = _fetch_dicts(cursor)
    return ActivitySummary(
        total_syncs=counts.get(ACTION_SYNC, 0),
        total_validations=counts.get(ACTION_VALIDATION, 0),
        total_generations=counts.get(ACTION_GENERATION, 0),
        recent=recent,
    )
