from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from datetime import date
from enum import Enum
from typing import Any

"""Backend row models for the ``clients`` and ``products`` tables.

Column names follow the backend schema (Spanish snake_case). The upsert
takes its values from ``to_row()``; backend-managed columns (id,
created_at, updated_at, dias_para_vencer) are never part of it.
"""

__all__ = [
    "Domain",
    "ProductStatus",
    "ClientRecord",
    "ProductRecord",
]


class Domain(str, Enum):
    """Upload / sync domain. The value doubles as backend table name."""
    PRODUCTS = "products"
    CLIENTS = "clients"

    @property
    def staging_key(self) -> str:
        return f"{self.value}_file_data"


class ProductStatus(str, Enum):
    VIGENTE = "VIGENTE"
    VENCIDO = "VENCIDO"
    CANCELADO = "CANCELADO"

    @classmethod
    def parse(cls, value: Any) -> ProductStatus | None:
        """Return the enum member for ``value`` or None for blank/unknown text."""
        if value is None:
            return None
        text = str(value).strip().upper()
        try:
            return cls(text)
        except ValueError:
            return None


@dataclass(frozen=True)
class ClientRecord:
    """Row of the ``clients`` table. Natural key: ``cuit`` (11 digits)."""
    cuit: int
    razon_social: str | None = None
    nombre_comercial: str | None = None
    domicilio_legal: str | None = None
    domicilio_planta: str | None = None
    telefono: str | None = None
    correo_electronico: str | None = None
    representante_nombre: str | None = None
    representante_domicilio: str | None = None
    representante_cuit: str | None = None
    enlace_djc: str | None = None
    documents_path: str | None = None

    NATURAL_KEY = "cuit"

    def to_row(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> ClientRecord:
        names = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in row.items() if k in names})


@dataclass(frozen=True)
class ProductRecord:
    """Row of the ``products`` table. Natural key: ``codificacion``.

    ``cuit`` references the holder client but is not enforced by the backend.
    Date columns hold ``datetime.date`` values (or None).
    """
    codificacion: str
    cuit: int | None = None
    titular: str | None = None
    tipo_certificacion: str | None = None
    estado: str | None = None
    en_proceso_renovacion: str | None = None
    direccion_legal: str | None = None
    fabricante: str | None = None
    planta_fabricacion: str | None = None
    origen: str | None = None
    producto: str | None = None
    marca: str | None = None
    modelo: str | None = None
    caracteristicas_tecnicas: str | None = None
    normas_aplicacion: str | None = None
    informe_ensayo_nro: str | None = None
    laboratorio: str | None = None
    ocp_extranjero: str | None = None
    certificado_extranjero_nro: str | None = None
    fecha_emision_cert_extranjero: date | None = None
    disposicion_convenio: str | None = None
    cod_rubro: int | None = None
    cod_subrubro: int | None = None
    nombre_subrubro: str | None = None
    fecha_emision: date | None = None
    fecha_ultima_vigilancia: date | None = None
    vencimiento: date | None = None
    fecha_cancelacion: date | None = None
    motivo_cancelacion: str | None = None
    certificates_path: str | None = None
    djc_path: str | None = None
    qr_code_path: str | None = None

    NATURAL_KEY = "codificacion"

    @property
    def status(self) -> ProductStatus | None:
        return ProductStatus.parse(self.estado)

    def to_row(self, exclude: set[str] | None = None) -> dict[str, Any]:
        row = asdict(self)
        if exclude:
            for name in exclude:
                row.pop(name, None)
        return row

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> ProductRecord:
        names = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in row.items() if k in names})
