"""Domain models for the compliance tracker.

Parsed uploads, validation findings, backend rows, configuration and
settings/session context objects.
"""

from .config_models import AppConfig, DatabaseConfig
from .error_record import ErrorRecord
from .raw_dataset import DatasetDecodeError, RawDataset
from .records import ClientRecord, Domain, ProductRecord, ProductStatus
from .validation import Severity, ValidationFinding

__all__ = [
    # Configuration models
    "AppConfig",
    "DatabaseConfig",
    # Ingestion models
    "RawDataset",
    "DatasetDecodeError",
    "Severity",
    "ValidationFinding",
    "ErrorRecord",
    # Backend rows
    "Domain",
    "ClientRecord",
    "ProductRecord",
    "ProductStatus",
]
