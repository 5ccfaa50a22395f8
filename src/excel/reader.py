from __future__ import annotations

import io
import math
from datetime import date, datetime
from pathlib import Path
from typing import Any, BinaryIO

import numpy as np
import pandas as pd

from src.models.raw_dataset import RawDataset

"""Spreadsheet parser: uploaded .csv / .xls / .xlsx -> RawDataset.

- Excel: first sheet only, first row is the header row. Date cells become ISO
  ``YYYY-MM-DD`` strings when their year is within [1900, 2100]; other dates
  are discarded (mis-typed serials produce absurd years).
- CSV: read header-less as text, rows whose cells are all blank are dropped,
  first row is the header row. Lines with more fields than the header line
  are cut to the header width instead of failing the upload.
- Trailing absent cells are trimmed so no row is longer than the header.

No network or disk writes happen here; staging is the caller's job.
"""

__all__ = [
    "ParseError",
    "UnsupportedFormatError",
    "EmptyFileError",
    "SUPPORTED_EXTENSIONS",
    "MIN_DATE_YEAR",
    "MAX_DATE_YEAR",
    "detect_format",
    "read_upload",
    "frame_to_dataset",
]

SUPPORTED_EXTENSIONS: dict[str, str] = {
    "csv": "csv",
    "xls": "excel",
    "xlsx": "excel",
}

MIN_DATE_YEAR = 1900
MAX_DATE_YEAR = 2100

CSV_ENCODINGS = ("utf-8-sig", "latin-1")


class ParseError(Exception):
    """Uploaded file could not be turned into a dataset; the operator must re-upload."""


class UnsupportedFormatError(ParseError):
    """Extension outside csv / xls / xlsx."""


class EmptyFileError(ParseError):
    """No data rows left after extracting the header row."""


def detect_format(file_name: str) -> str:
    """Return ``"csv"`` or ``"excel"`` for a file name, by extension."""
    extension = Path(file_name).suffix.lower().lstrip(".")
    kind = SUPPORTED_EXTENSIONS.get(extension)
    if kind is None:
        raise UnsupportedFormatError(
            f"unsupported file format '{extension or file_name}': use Excel (.xlsx, .xls) or CSV (.csv)"
        )
    return kind


def _load_bytes(source: Path | str | BinaryIO) -> bytes:
    if isinstance(source, (str, Path)):
        try:
            return Path(source).read_bytes()
        except OSError as e:
            raise ParseError(f"cannot read file {source}: {e}") from e
    return source.read()


def _read_excel_frame(data: bytes) -> pd.DataFrame:
    try:
        return pd.read_excel(io.BytesIO(data), sheet_name=0, header=None)
    except Exception as e:  # openpyxl / xlrd raise a wide range of errors on corrupt input
        raise ParseError(f"error processing Excel file: {e}") from e


def _read_csv_frame(data: bytes) -> pd.DataFrame:
    last_error: Exception | None = None
    for encoding in CSV_ENCODINGS:
        try:
            # 列数は最初の非空行 (ヘッダ行) で決まる。長い行は末尾を切り捨てる
            width = pd.read_csv(
                io.BytesIO(data),
                header=None,
                nrows=1,
                dtype=str,
                keep_default_na=False,
                skip_blank_lines=True,
                encoding=encoding,
            ).shape[1]
            return pd.read_csv(
                io.BytesIO(data),
                header=None,
                dtype=str,
                keep_default_na=False,
                skip_blank_lines=True,
                encoding=encoding,
                engine="python",
                on_bad_lines=lambda bad: bad[:width],
            )
        except pd.errors.EmptyDataError as e:
            raise EmptyFileError("the CSV file is empty") from e
        except UnicodeDecodeError as e:
            last_error = e
            continue
        except pd.errors.ParserError as e:
            raise ParseError(f"error processing CSV file: {e}") from e
    raise ParseError(f"error decoding CSV file: {last_error}")


def _convert_cell(value: Any) -> Any:
    """Normalize one cell value to a JSON-friendly Python value (None = absent)."""
    if value is None:
        return None
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, (pd.Timestamp, datetime, date)):
        if pd.isna(value):
            return None
        if not (MIN_DATE_YEAR <= value.year <= MAX_DATE_YEAR):
            return None
        return value.strftime("%Y-%m-%d")
    if isinstance(value, float):
        if math.isnan(value):
            return None
        if value.is_integer():
            return int(value)
        return value
    if isinstance(value, (int, bool, str)):
        return value
    if pd.isna(value):
        return None
    return str(value)


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def frame_to_dataset(frame: pd.DataFrame, file_name: str, source: str) -> RawDataset:
    """Split a header-less DataFrame into headers + rows.

    Raises:
        EmptyFileError: when the frame has no rows or only a header row
    """
    raw_rows = [[_convert_cell(v) for v in row] for row in frame.itertuples(index=False, name=None)]
    raw_rows = [r for r in raw_rows if not all(_is_blank(v) for v in r)]
    if not raw_rows:
        raise EmptyFileError(f"the file {file_name} is empty")

    headers = ["" if v is None else str(v).strip() for v in raw_rows[0]]
    while headers and headers[-1] == "":
        headers.pop()
    if not headers:
        raise EmptyFileError(f"the file {file_name} has no header row")

    rows: list[list[Any]] = []
    for raw in raw_rows[1:]:
        row = raw[: len(headers)]
        while row and row[-1] is None:
            row.pop()
        if all(_is_blank(v) for v in row):
            continue
        rows.append(row)

    if not rows:
        raise EmptyFileError(f"the file {file_name} has no data rows")

    return RawDataset(headers=headers, rows=rows, source_file_name=file_name, source=source)


def read_upload(source: Path | str | BinaryIO, file_name: str | None = None) -> RawDataset:
    """Parse an uploaded spreadsheet.

    Parameters
    ----------
    source: file path or binary stream
    file_name: declared name (its extension selects the parser). Defaults to
        the path name when ``source`` is a path.

    Raises
    ------
    UnsupportedFormatError: extension outside csv / xls / xlsx
    EmptyFileError: zero data rows after the header row
    ParseError: unreadable or malformed content
    """
    if file_name is None:
        if not isinstance(source, (str, Path)):
            raise ParseError("file_name is required when parsing a stream")
        file_name = Path(source).name

    kind = detect_format(file_name)
    data = _load_bytes(source)
    if not data:
        raise EmptyFileError(f"the file {file_name} is empty")

    if kind == "csv":
        frame = _read_csv_frame(data)
    else:
        frame = _read_excel_frame(data)
    return frame_to_dataset(frame, file_name, kind)
