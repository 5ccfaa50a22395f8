from __future__ import annotations

from dataclasses import dataclass, fields, replace
from typing import Any

"""Operator settings stored as key/value rows in the ``settings`` table."""

__all__ = [
    "Settings",
    "SETTING_DESCRIPTIONS",
]

SETTING_DESCRIPTIONS: dict[str, str] = {
    "SPREADSHEET_ID_PRODUCTS": "ID del Google Sheet que contiene los datos de productos",
    "SPREADSHEET_ID_PRODUCTS_TAB": "Pestaña del Google Sheet de productos (formato: nombre|id)",
    "SPREADSHEET_ID_CLIENTS": "ID del Google Sheet que contiene los datos de clientes",
    "SPREADSHEET_ID_CLIENTS_TAB": "Pestaña del Google Sheet de clientes (formato: nombre|id)",
    "GOOGLE_DRIVE_FOLDER_ID": "ID de la carpeta de Google Drive para almacenar archivos",
    "SUPABASE_BUCKET_CERTIFICATES": "Nombre del bucket para certificados",
    "SUPABASE_BUCKET_CLIENT_DOCS": "Nombre del bucket para documentos de clientes",
    "SUPABASE_BUCKET_QRS": "Nombre del bucket para códigos QR",
    "CRITICAL_DAYS_THRESHOLD": "Número de días antes del vencimiento para mostrar alerta",
    "DJC_TEMPLATE_RES16_ID": "ID del template DJC para Resolución 16/2025",
    "DJC_TEMPLATE_RES17_ID": "ID del template DJC para Resolución 17/2025",
}


@dataclass(frozen=True)
class Settings:
    SPREADSHEET_ID_PRODUCTS: str = ""
    SPREADSHEET_ID_PRODUCTS_TAB: str = ""
    SPREADSHEET_ID_CLIENTS: str = ""
    SPREADSHEET_ID_CLIENTS_TAB: str = ""
    GOOGLE_DRIVE_FOLDER_ID: str = ""
    SUPABASE_BUCKET_CERTIFICATES: str = "certificates"
    SUPABASE_BUCKET_CLIENT_DOCS: str = "client-documents"
    SUPABASE_BUCKET_QRS: str = "qr-codes"
    CRITICAL_DAYS_THRESHOLD: int = 30
    DJC_TEMPLATE_RES16_ID: str = ""
    DJC_TEMPLATE_RES17_ID: str = ""

    @classmethod
    def keys(cls) -> list[str]:
        return [f.name for f in fields(cls)]

    def merged(self, values: dict[str, Any]) -> Settings:
        """Copy with ``values`` applied; unknown keys ignored, blanks keep the current value.

        A non-numeric CRITICAL_DAYS_THRESHOLD keeps the current threshold.
        """
        known = set(self.keys())
        changes: dict[str, Any] = {}
        for key, value in values.items():
            if key not in known or value is None or str(value).strip() == "":
                continue
            if key == "CRITICAL_DAYS_THRESHOLD":
                try:
                    changes[key] = int(str(value).strip())
                except ValueError:
                    continue
            else:
                changes[key] = str(value)
        return replace(self, **changes)
