from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

"""RawDataset model: parsed upload before validation or sync.

The JSON form keeps the key names of the staged document
(headers / rows / fileName / totalRows / source) so that staged files written
by earlier sessions stay readable.
"""

__all__ = [
    "RawDataset",
    "DatasetDecodeError",
]


class DatasetDecodeError(ValueError):
    """Raised when a staged JSON document does not describe a dataset."""


@dataclass(frozen=True)
class RawDataset:
    """Header row plus ordered data rows of a single uploaded file.

    Rows never hold more cells than there are headers. Missing trailing cells
    are absent, so ``row[i]`` must be guarded with ``len(row)``; use
    ``src.excel.headers.field`` or ``cell`` instead of indexing directly.
    """
    headers: list[str]
    rows: list[list[Any]]
    source_file_name: str
    source: str = "csv"  # csv | excel
    row_count: int = field(default=-1)

    def __post_init__(self) -> None:
        # row_count は rows から導出 (明示指定時も rows と一致させる)
        object.__setattr__(self, "row_count", len(self.rows))

    def cell(self, row_index: int, column: int) -> Any:
        row = self.rows[row_index]
        if column < 0 or column >= len(row):
            return None
        return row[column]

    def to_dict(self) -> dict[str, Any]:
        return {
            "headers": list(self.headers),
            "rows": [list(r) for r in self.rows],
            "fileName": self.source_file_name,
            "totalRows": self.row_count,
            "source": self.source,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)

    @staticmethod
    def from_dict(data: dict[str, Any]) -> RawDataset:
        if not isinstance(data, dict):
            raise DatasetDecodeError(f"expected object, got {type(data).__name__}")
        headers = data.get("headers")
        rows = data.get("rows")
        if not isinstance(headers, list) or not isinstance(rows, list):
            raise DatasetDecodeError("dataset requires 'headers' and 'rows' lists")
        if any(not isinstance(r, list) for r in rows):
            raise DatasetDecodeError("every row must be a list")
        return RawDataset(
            headers=[str(h) if h is not None else "" for h in headers],
            rows=[list(r) for r in rows],
            source_file_name=str(data.get("fileName") or ""),
            source=str(data.get("source") or "csv"),
        )

    @staticmethod
    def from_json(text: str) -> RawDataset:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise DatasetDecodeError(f"invalid json: {e}") from e
        return RawDataset.from_dict(data)
