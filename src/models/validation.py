from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

"""Validation finding model.

Findings are collected, never raised. A dataset is "clean" when no finding has
ERROR severity; warnings do not block a sync.
"""

__all__ = [
    "Severity",
    "ValidationFinding",
]


class Severity(Enum):
    ERROR = "error"
    WARNING = "warning"
    SUCCESS = "success"


@dataclass(frozen=True)
class ValidationFinding:
    """Single validation result.

    Attributes:
        severity: error / warning / success
        message: Operator-facing message (Spanish, as shown in reports)
        field: Logical field the finding refers to, if any
        row_number: 1-based sheet row (header is row 1, first data row is 2)
    """
    severity: Severity
    message: str
    field: str | None = None
    row_number: int | None = None

    @property
    def is_error(self) -> bool:
        return self.severity is Severity.ERROR
