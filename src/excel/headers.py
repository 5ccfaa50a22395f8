from __future__ import annotations

import re
import unicodedata
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

"""Header mapper: header row -> logical field lookup.

Headers are normalized (trimmed, accent-stripped, uppercased, inner whitespace
collapsed) and matched against a static alias table, so "Dirección",
"DIRECCION", "Domicilio" and "domicilio legal" all resolve to the same logical
field. A logical field without any matching header is *absent*, which callers
must treat differently from a present-but-empty cell.
"""

__all__ = [
    "HEADER_ALIASES",
    "HeaderIndex",
    "HeaderIndexError",
    "build_header_index",
    "field",
    "normalize_header",
]

_WHITESPACE = re.compile(r"\s+")

# logical name -> header variants, in lookup priority order
HEADER_ALIASES: dict[str, tuple[str, ...]] = {
    # products
    "codificacion": ("CODIFICACION", "CODIGO"),
    "cuit": ("CUIT",),
    "titular": ("TITULAR", "EMPRESA"),
    "tipo_certificacion": ("TIPO DE CERTIFICACION", "TIPO"),
    "estado": ("ESTADO",),
    "en_proceso_renovacion": ("EN PROCESO RENOVACION", "EN PROCESO DE RENOVACION"),
    "direccion_legal": ("DIRECCION LEGAL", "DIRECCION LEGAL EMPRESA"),
    "fabricante": ("FABRICANTE",),
    "planta_fabricacion": ("PLANTA FABRICACION", "PLANTA DE FABRICACION"),
    "origen": ("ORIGEN",),
    "producto": ("PRODUCTO",),
    "marca": ("MARCA",),
    "modelo": ("MODELO",),
    "caracteristicas_tecnicas": ("CARACTERISTICAS TECNICAS",),
    "normas_aplicacion": ("NORMAS DE APLICACION", "NORMAS"),
    "informe_ensayo_nro": ("INFORME ENSAYO NRO", "INFORME DE ENSAYO"),
    "laboratorio": ("LABORATORIO",),
    "ocp_extranjero": ("OCP EXTRANJERO",),
    "certificado_extranjero_nro": ("N CERTIFICADO EXTRANJERO", "CERTIFICADO EXTRANJERO NRO"),
    "fecha_emision_cert_extranjero": (
        "FECHA EMISION CERTIFICADO EXTRANJERO",
        "FECHA EMISION CERT EXTRANJERO",
    ),
    "disposicion_convenio": ("DISPOSICION CONVENIO",),
    "cod_rubro": ("COD RUBRO",),
    "cod_subrubro": ("COD SUBRUBRO",),
    "nombre_subrubro": ("NOMBRE SUBRUBRO",),
    "fecha_emision": ("FECHA EMISION", "FECHA DE EMISION"),
    "fecha_ultima_vigilancia": ("FECHA ULTIMA VIGILANCIA", "FECHA ULTIMA NOTA VIGILANCIA"),
    "vencimiento": ("VENCIMIENTO", "FECHA DE VENCIMIENTO"),
    "fecha_cancelacion": ("FECHA CANCELACION", "FECHA DE CANCELACION"),
    "motivo_cancelacion": ("MOTIVO CANCELACION",),
    # clients
    "razon_social": ("RAZON SOCIAL",),
    "domicilio": ("DIRECCION", "DOMICILIO", "DOMICILIO LEGAL"),
    "email": ("EMAIL", "CORREO ELECTRONICO", "CORREO"),
}


class HeaderIndexError(ValueError):
    """Raised for a logical field name that the alias table does not know."""


def normalize_header(name: Any) -> str:
    """Uppercase, accent-stripped, whitespace-collapsed form of a header cell."""
    if name is None:
        return ""
    text = unicodedata.normalize("NFKD", str(name))
    text = "".join(ch for ch in text if not unicodedata.combining(ch))
    return _WHITESPACE.sub(" ", text).strip().upper()


@dataclass(frozen=True)
class HeaderIndex:
    """Normalized header name -> zero-based column index."""
    columns: dict[str, int]

    def column(self, logical: str) -> int | None:
        """Column index for a logical field, or None when absent.

        Raises:
            HeaderIndexError: logical name not present in ``HEADER_ALIASES``
        """
        aliases = HEADER_ALIASES.get(logical)
        if aliases is None:
            raise HeaderIndexError(f"unknown logical field: {logical!r}")
        for alias in aliases:
            idx = self.columns.get(alias)
            if idx is not None:
                return idx
        return None

    def has(self, logical: str) -> bool:
        return self.column(logical) is not None


def build_header_index(headers: Sequence[Any]) -> HeaderIndex:
    columns: dict[str, int] = {}
    for idx, header in enumerate(headers):
        key = normalize_header(header)
        if key and key not in columns:
            columns[key] = idx
    return HeaderIndex(columns=columns)


def field(row: Sequence[Any], index: HeaderIndex, logical: str) -> Any:
    """Typed accessor replacing ``row[header_map['X']]``.

    Returns the cell value, or None when the column is absent from the headers
    or the row is shorter than the column position.
    """
    idx = index.column(logical)
    if idx is None or idx >= len(row):
        return None
    return row[idx]
