from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

"""Product QR links and scan logging.

The QR payload and the landing route share one URL:
``{origin}/product/{codificacion}``.
"""

__all__ = [
    "QR_VERSION",
    "QRError",
    "log_qr_scan",
    "product_url",
    "register_qr",
]

logger = logging.getLogger(__name__)

QR_VERSION = "1.0"


class QRError(Exception):
    pass


def product_url(origin: str, codificacion: str) -> str:
    """Public landing URL of a product: ``{origin}/product/{codificacion}``.

    The code is percent-encoded as one path segment, so a code with ``/``,
    spaces or other reserved characters still routes to a single product.
    Plain codes such as ``P-001`` come out unchanged.
    """
    code = str(codificacion).strip()
    if not code:
        raise QRError("codificación is required")
    return f"{origin.rstrip('/')}/product/{quote(code, safe='')}"


def register_qr(cursor: Any, origin: str, codificacion: str) -> str:
    """Record the product's QR link and return it.

    Raises:
        QRError: unknown product or backend failure
    """
    url = product_url(origin, codificacion)
    try:
        cursor.execute(
            "UPDATE products SET qr_link = %s, qr_generado = true, qr_version = %s, "
            "qr_generated_at = now() WHERE codificacion = %s",
            (url, QR_VERSION, codificacion),
        )
    except Exception as e:
        raise QRError(f"error updating product with QR info: {e}") from e
    if cursor.rowcount == 0:
        raise QRError(f"product not found: {codificacion}")
    return url


def log_qr_scan(
    cursor: Any,
    codificacion: str,
    user_agent: str | None = None,
    referrer: str | None = None,
) -> bool:
    """Append a ``qr_scans`` row. Failures are logged only; a scan never blocks the redirect."""
    try:
        cursor.execute(
            "INSERT INTO qr_scans (product_codificacion, user_agent, referrer) VALUES (%s, %s, %s)",
            (codificacion, user_agent, referrer),
        )
    except Exception as e:
        logger.warning("error logging QR scan for %s: %s", codificacion, e)
        return False
    return True
