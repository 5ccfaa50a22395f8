from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Any
from zoneinfo import ZoneInfo

from ..models.records import ProductStatus

"""Derived status of a certified product.

``days_until_expiration`` = vencimiento - today, in days (negative once
expired). ``classify_status`` maps the status and that day count to the alert
severity shown in product lists. Both are pure; the threshold comes from the
caller's settings.
"""

__all__ = [
    "DEFAULT_THRESHOLD_DAYS",
    "AlertSeverity",
    "classify_status",
    "days_until_expiration",
    "today_in",
]

DEFAULT_THRESHOLD_DAYS = 30


class AlertSeverity(str, Enum):
    OK = "ok"
    WARNING = "warning"
    CRITICAL = "critical"
    NEUTRAL = "neutral"


def today_in(timezone: str) -> date:
    return datetime.now(ZoneInfo(timezone)).date()


def days_until_expiration(vencimiento: date | str | None, today: date) -> int | None:
    if vencimiento is None or vencimiento == "":
        return None
    if isinstance(vencimiento, datetime):
        vencimiento = vencimiento.date()
    elif isinstance(vencimiento, str):
        try:
            vencimiento = date.fromisoformat(vencimiento[:10])
        except ValueError:
            return None
    return (vencimiento - today).days


def classify_status(
    status: ProductStatus | str | None,
    days: int | None,
    threshold: int = DEFAULT_THRESHOLD_DAYS,
) -> AlertSeverity:
    """Severity for a product row.

    VIGENTE with no day count or more than ``threshold`` days left is OK,
    VIGENTE within the threshold (inclusive) is WARNING, VENCIDO is CRITICAL,
    anything else (CANCELADO, blank, unknown) is NEUTRAL.
    """
    parsed: Any = status if isinstance(status, ProductStatus) else ProductStatus.parse(status)
    if parsed is ProductStatus.VIGENTE:
        if days is not None and days <= threshold:
            return AlertSeverity.WARNING
        return AlertSeverity.OK
    if parsed is ProductStatus.VENCIDO:
        return AlertSeverity.CRITICAL
    return AlertSeverity.NEUTRAL
